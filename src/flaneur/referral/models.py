"""Referral ledger database models."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from flaneur.storage.models import Base


class ReferralStatus(str, Enum):
    """Ledger event status. ``converted`` is terminal."""
    CLICKED = "clicked"
    CONVERTED = "converted"


class ReferralEvent(Base):
    """One attribution event.

    Created as ``clicked`` when a prospect follows a referral link, or directly
    as ``converted`` when a conversion arrives with no matching click. The only
    mutation ever applied is the single clicked -> converted upgrade; rows are
    never deleted.
    """
    __tablename__ = "referral_events"
    __table_args__ = (
        # Concurrent duplicate clicks inside one window collide here
        UniqueConstraint("ip_hash", "dedup_bucket", name="uq_referral_events_ip_bucket"),
        Index("ix_referral_events_ip_hash_clicked_at", "ip_hash", "clicked_at"),
        Index("ix_referral_events_code_status", "code", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(32), nullable=False)

    # Who issued the code
    referrer_type: Mapped[str] = mapped_column(String(20), nullable=False)
    referrer_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReferralStatus.CLICKED.value
    )

    # Dedup only, never identity
    ip_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    dedup_bucket: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Filled in on conversion
    referred_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    referred_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    referred_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    clicked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    converted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<ReferralEvent(id={self.id}, code={self.code}, status={self.status})>"


class ReferralCodeClaim(Base):
    """Single namespace for referral codes across both account kinds.

    A row is inserted in the same transaction that writes the code onto the
    account, so the primary key rejects a code that any account already holds.
    """
    __tablename__ = "referral_code_claims"

    code: Mapped[str] = mapped_column(String(32), primary_key=True)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)
    account_id: Mapped[str] = mapped_column(String(36), nullable=False)

    claimed_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<ReferralCodeClaim(code={self.code}, account={self.account_type}:{self.account_id})>"
