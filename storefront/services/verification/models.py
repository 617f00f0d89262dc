"""Passcode store models.

Challenge rows are never deleted; they expire by time and stay behind as an
audit trail.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from storefront.common.db import Base


class PasscodeChallenge(Base):
    """One issued passcode for an email identity."""

    __tablename__ = "passcode_challenges"
    __table_args__ = (Index("ix_passcode_challenges_email_created_at", "email", "created_at"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    email: Mapped[str] = mapped_column(String)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    code: Mapped[str] = mapped_column(String(6))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class PasscodeCooldown(Base):
    """Last issuance time per identity; its row serializes concurrent issues."""

    __tablename__ = "passcode_cooldowns"

    email: Mapped[str] = mapped_column(String, primary_key=True)
    last_issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
