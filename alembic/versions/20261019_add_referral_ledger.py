"""Add referral ledger tables

Revision ID: 001_referral_ledger
Revises:
Create Date: 2026-10-19

Adds:
- referral_events: click/conversion ledger
- referral_code_claims: single code namespace across account kinds
- referral_code columns on profiles and newsletter_subscribers
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_referral_ledger"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create referral ledger tables."""

    op.create_table(
        "referral_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("referrer_type", sa.String(20), nullable=False),
        sa.Column("referrer_id", sa.String(36), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("ip_hash", sa.String(64), nullable=True),
        sa.Column("dedup_bucket", sa.Integer(), nullable=True),
        sa.Column("referred_email", sa.String(255), nullable=True),
        sa.Column("referred_type", sa.String(20), nullable=True),
        sa.Column("referred_id", sa.String(36), nullable=True),
        sa.Column("clicked_at", sa.DateTime(), nullable=True),
        sa.Column("converted_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ip_hash", "dedup_bucket", name="uq_referral_events_ip_bucket"),
    )
    op.create_index("ix_referral_events_referrer_id", "referral_events", ["referrer_id"], unique=False)
    op.create_index("ix_referral_events_ip_hash_clicked_at", "referral_events", ["ip_hash", "clicked_at"], unique=False)
    op.create_index("ix_referral_events_code_status", "referral_events", ["code", "status"], unique=False)

    op.create_table(
        "referral_code_claims",
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("account_type", sa.String(20), nullable=False),
        sa.Column("account_id", sa.String(36), nullable=False),
        sa.Column("claimed_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("code"),
    )

    # Referral code on both account kinds
    op.add_column("profiles", sa.Column("referral_code", sa.String(32), nullable=True))
    op.create_index("ix_profiles_referral_code", "profiles", ["referral_code"], unique=True)
    op.add_column("newsletter_subscribers", sa.Column("referral_code", sa.String(32), nullable=True))
    op.create_index(
        "ix_newsletter_subscribers_referral_code",
        "newsletter_subscribers",
        ["referral_code"],
        unique=True,
    )


def downgrade() -> None:
    """Drop referral ledger tables."""
    op.drop_index("ix_newsletter_subscribers_referral_code", table_name="newsletter_subscribers")
    with op.batch_alter_table("newsletter_subscribers") as batch_op:
        batch_op.drop_column("referral_code")
    op.drop_index("ix_profiles_referral_code", table_name="profiles")
    with op.batch_alter_table("profiles") as batch_op:
        batch_op.drop_column("referral_code")

    op.drop_table("referral_code_claims")
    op.drop_table("referral_events")
