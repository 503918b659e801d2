"""Repository for Profile operations."""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.profile import Profile


class ProfileRepository:
    """Stateless repository for Profile table operations.

    All methods are static; there is no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.

    There is deliberately no generic update(): the credits column is only
    changed through CreditRepository.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> Profile | None:
        """Fetch a profile by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            Profile if found, None otherwise.
        """
        return await db.get(Profile, user_id)

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        email: str,
        role: str = "student",
        full_name: str | None = None,
    ) -> Profile:
        """Create a new profile with a zero balance.

        Email is normalized to lowercase before storage.

        Args:
            db: Async database session.
            user_id: Auth identity to use as primary key.
            email: User email address.
            role: student or teacher.
            full_name: Display name.

        Returns:
            Created Profile with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If the id or email already exists.
        """
        profile = Profile(
            id=user_id,
            email=email.lower(),
            role=role,
            full_name=full_name,
            credits=0,
        )
        db.add(profile)
        await db.flush()
        await db.refresh(profile)
        return profile
