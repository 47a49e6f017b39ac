"""Repository layer for the referral event ledger.

Append or update-by-id only. No bulk mutation, no deletes.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from flaneur.accounts.models import AccountRef
from flaneur.referral.models import ReferralEvent, ReferralStatus


class ReferralEventRepository:
    """Repository for ReferralEvent entities."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, event_id: int) -> ReferralEvent | None:
        """Get event by ID."""
        return self.session.get(ReferralEvent, event_id)

    def recent_click_exists(self, ip_hash: str, since: datetime) -> bool:
        """Check for any event from this ip hash clicked at or after ``since``."""
        found = self.session.scalar(
            select(ReferralEvent.id)
            .where(
                ReferralEvent.ip_hash == ip_hash,
                ReferralEvent.clicked_at >= since,
            )
            .limit(1)
        )
        return found is not None

    def add_click(
        self,
        code: str,
        referrer: AccountRef,
        ip_hash: str,
        dedup_bucket: int,
        clicked_at: datetime,
    ) -> ReferralEvent:
        """Insert a ``clicked`` event.

        Raises:
            IntegrityError: (on flush) if a click with the same ip hash already
                landed in this dedup bucket
        """
        event = ReferralEvent(
            code=code,
            referrer_type=referrer.kind.value,
            referrer_id=referrer.id,
            status=ReferralStatus.CLICKED.value,
            ip_hash=ip_hash,
            dedup_bucket=dedup_bucket,
            clicked_at=clicked_at,
        )
        self.session.add(event)
        self.session.flush()
        return event

    def latest_unmatched_click(self, code: str) -> ReferralEvent | None:
        """Most recent ``clicked`` event for a code with no referred email yet."""
        return self.session.scalar(
            select(ReferralEvent)
            .where(
                ReferralEvent.code == code,
                ReferralEvent.status == ReferralStatus.CLICKED.value,
                ReferralEvent.referred_email.is_(None),
            )
            .order_by(ReferralEvent.clicked_at.desc(), ReferralEvent.id.desc())
            .limit(1)
        )

    def mark_converted(
        self,
        event_id: int,
        referred_email: str,
        referred: AccountRef | None,
        converted_at: datetime,
    ) -> bool:
        """Upgrade one click to ``converted`` if it is still unmatched.

        The status and null-email checks run inside the UPDATE itself, so of
        two conversions racing for the same click exactly one wins.

        Returns:
            True if this call performed the upgrade
        """
        result = self.session.execute(
            update(ReferralEvent)
            .where(
                ReferralEvent.id == event_id,
                ReferralEvent.status == ReferralStatus.CLICKED.value,
                ReferralEvent.referred_email.is_(None),
            )
            .values(
                status=ReferralStatus.CONVERTED.value,
                referred_email=referred_email,
                referred_type=referred.kind.value if referred else None,
                referred_id=referred.id if referred else None,
                converted_at=converted_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def add_conversion(
        self,
        code: str,
        referrer: AccountRef,
        referred_email: str,
        referred: AccountRef | None,
        converted_at: datetime,
    ) -> ReferralEvent:
        """Insert a ``converted`` event with no prior click."""
        event = ReferralEvent(
            code=code,
            referrer_type=referrer.kind.value,
            referrer_id=referrer.id,
            status=ReferralStatus.CONVERTED.value,
            referred_email=referred_email,
            referred_type=referred.kind.value if referred else None,
            referred_id=referred.id if referred else None,
            converted_at=converted_at,
        )
        self.session.add(event)
        self.session.flush()
        return event

    def stats_for_referrer(self, referrer: AccountRef) -> dict[str, Any]:
        """Count clicks and conversions attributed to one referrer."""
        rows = self.session.execute(
            select(ReferralEvent.status, func.count(ReferralEvent.id))
            .where(
                ReferralEvent.referrer_type == referrer.kind.value,
                ReferralEvent.referrer_id == referrer.id,
            )
            .group_by(ReferralEvent.status)
        ).all()
        by_status = {status: count for status, count in rows}

        clicks = self.session.scalar(
            select(func.count(ReferralEvent.id)).where(
                ReferralEvent.referrer_type == referrer.kind.value,
                ReferralEvent.referrer_id == referrer.id,
                ReferralEvent.clicked_at.is_not(None),
            )
        )

        return {
            "clicks": clicks or 0,
            "conversions": by_status.get(ReferralStatus.CONVERTED.value, 0),
            "pending": by_status.get(ReferralStatus.CLICKED.value, 0),
        }
