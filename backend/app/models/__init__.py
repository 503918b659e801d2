"""SQLAlchemy ORM models for the Agora credit service.

All models are exported from this module for convenient imports:
    from app.models import Profile, CreditTransaction

Models are organized by domain:
- profile.py: Profile (Tier 0, owns the credit balance)
- credit.py: CreditTransaction, CreditTransactionType (Tier 1, append-only ledger)
"""

from app.models.base import Base, TimestampMixin
from app.models.credit import CreditTransaction, CreditTransactionType
from app.models.profile import Profile

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Tier 0
    "Profile",
    # Tier 1 - Credit ledger
    "CreditTransaction",
    "CreditTransactionType",
]
