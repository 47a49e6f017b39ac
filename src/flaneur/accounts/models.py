"""Account models for the two kinds of referrer.

Profiles are signed-in users; newsletter subscribers only gave an email.
The tables are owned by their respective flows. The referral engine reads
them and writes nothing but ``referral_code``.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from flaneur.storage.models import Base, new_uuid


class AccountKind(str, Enum):
    """Which account table a referrer or referred party lives in."""
    PROFILE = "profile"
    NEWSLETTER = "newsletter"


@dataclass(frozen=True)
class AccountRef:
    """Tagged reference to one account of either kind."""

    kind: AccountKind
    id: str
    email: str | None = None


class Profile(Base):
    """Registered user profile."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    referral_code: Mapped[str | None] = mapped_column(String(32), nullable=True, unique=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, code={self.referral_code})>"


class NewsletterSubscriber(Base):
    """Newsletter-only subscriber, authenticated by email + unsubscribe token."""

    __tablename__ = "newsletter_subscribers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    unsubscribe_token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    referral_code: Mapped[str | None] = mapped_column(String(32), nullable=True, unique=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<NewsletterSubscriber(id={self.id}, code={self.referral_code})>"
