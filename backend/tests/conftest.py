import ast
import inspect
import socket
import textwrap
import uuid
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime, timedelta

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings
from app.models import Profile
from app.models.base import Base
from app.providers import factory
from app.providers.llm.base import AIOperation
from app.providers.llm.mock_adapter import MockLLMProvider

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Test user ID (consistent across tests for predictable auth)
TEST_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
ADMIN_USER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000aa")

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow


def create_test_jwt(
    user_id: uuid.UUID = TEST_USER_ID,
    *,
    secret: str = TEST_AUTH_SECRET,
    expires_delta: timedelta | None = None,
    iat: datetime | None = None,
) -> str:
    """Create a signed JWT for test authentication.

    Args:
        user_id: User UUID to encode in the sub claim.
        secret: Signing secret (must match settings.auth_secret in tests).
        expires_delta: Time until expiration. Defaults to 1 hour.
        iat: Issued-at time. Defaults to now.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or timedelta(hours=1)),
        "iat": iat or now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on port 5432, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("127.0.0.1", 5432))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available.

    Called by fixtures that require database connection.
    Provides clear skip message to help diagnose CI/local issues.
    """
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available on port 5432. "
            "Start database with: docker compose up -d"
        )


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine (for multi-session tests)."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


async def create_profile(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    credits: int = 0,
    is_admin: bool = False,
) -> Profile:
    """Insert a profile with a balance and no ledger history.

    Only for test setup: real accounts are opened through CreditLedger.
    """
    profile = Profile(
        id=user_id,
        email=f"{user_id.hex[:12]}@example.com",
        credits=credits,
        is_admin=is_admin,
    )
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    return profile


@pytest.fixture
def mock_premium() -> Iterator[MockLLMProvider]:
    """Mock premium provider injected into the factory singleton.

    Yields:
        Vision-capable MockLLMProvider named "openrouter".
    """
    mock = MockLLMProvider(
        {
            AIOperation.CHAT: "Premium tutor answer",
            AIOperation.OCR: " 2x + 3 = 7 ",
        },
        name="openrouter",
        vision=True,
    )
    factory._premium_provider = mock

    yield mock

    factory.reset_providers()


@pytest.fixture
def mock_free() -> Iterator[MockLLMProvider]:
    """Mock free provider injected into the factory singleton.

    Yields:
        Text-only MockLLMProvider named "hackclub".
    """
    mock = MockLLMProvider(
        {AIOperation.CHAT: "Free tutor answer"},
        name="hackclub",
        vision=False,
    )
    factory._free_provider = mock

    yield mock

    factory.reset_providers()


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> Profile:
    """Profile for the authenticated test user with 5 credits."""
    return await create_profile(db_session, TEST_USER_ID, credits=5)


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> Profile:
    """Admin profile for admin endpoint tests."""
    return await create_profile(db_session, ADMIN_USER_ID, is_admin=True)


@pytest_asyncio.fixture
async def _api_overrides(session_factory) -> AsyncGenerator[None, None]:
    """Point the app at the test database and enable JWT auth."""
    from app.core.database import get_db
    from app.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_auth_enabled = settings.auth_enabled
    original_auth_secret = settings.auth_secret
    settings.auth_enabled = True
    settings.auth_secret = SecretStr(TEST_AUTH_SECRET)

    yield

    settings.auth_enabled = original_auth_enabled
    settings.auth_secret = original_auth_secret
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(
    _api_overrides,
    test_user,  # noqa: ARG001 - ensures user exists
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client authenticated as TEST_USER_ID via JWT cookie.

    Yields:
        Configured AsyncClient for making authenticated API requests.
    """
    from app.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        cookies={settings.auth_cookie_name: create_test_jwt(TEST_USER_ID)},
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_client(
    _api_overrides,
    admin_user,  # noqa: ARG001 - ensures admin exists
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client authenticated as an admin."""
    from app.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        cookies={settings.auth_cookie_name: create_test_jwt(ADMIN_USER_ID)},
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def unauthenticated_client(_api_overrides) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client without a session cookie (auth enabled)."""
    from app.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# =============================================================================
# Autouse Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Security: Rate limiting is tested separately; disable for other tests
    to avoid flaky failures from rate limit triggers.

    Yields:
        None (autouse fixture).
    """
    from app.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    limiter.enabled = original_enabled


@pytest.fixture(autouse=True)
def reset_provider_singletons() -> Iterator[None]:
    """Ensure no provider singleton leaks between tests."""
    factory.reset_providers()
    yield
    factory.reset_providers()


# =============================================================================
# Test Antipattern Detection (warning-only)
# =============================================================================

_BANNED_FUNCTIONS = frozenset({"isinstance", "issubclass", "hasattr"})
_BANNED_ATTRS = frozenset({"__abstractmethods__"})


def _find_antipatterns_in_source(source: str) -> list[str]:
    """Scan test function source for banned structural assertion patterns."""
    try:
        tree = ast.parse(textwrap.dedent(source))
    except SyntaxError:
        return []

    findings: list[str] = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue
        if isinstance(node.func, ast.Name) and node.func.id in _BANNED_FUNCTIONS:
            findings.append(node.func.id)
        if isinstance(node.func, ast.Attribute) and node.func.attr in _BANNED_ATTRS:
            findings.append(node.func.attr)
    return findings


_antipattern_warnings: list[str] = []


def pytest_runtest_teardown(item: pytest.Item) -> None:
    """Check each test for antipattern usage after it runs."""
    if not hasattr(item, "obj") or not callable(item.obj):
        return
    try:
        source = inspect.getsource(item.obj)
    except (OSError, TypeError):
        return

    patterns = _find_antipatterns_in_source(source)
    if patterns:
        _antipattern_warnings.append(f"  {item.nodeid}: {', '.join(patterns)}")


def pytest_terminal_summary(
    terminalreporter: pytest.TerminalReporter,
) -> None:
    """Report test antipatterns at the end of the test session (warning only)."""
    if _antipattern_warnings:
        terminalreporter.section("test antipattern warnings")
        terminalreporter.line(
            "The following tests assert on structure instead of behavior "
            "(isinstance/issubclass/hasattr)."
        )
        terminalreporter.line("")
        for w in _antipattern_warnings:
            terminalreporter.line(w)
        _antipattern_warnings.clear()
