"""Balance ledger schema baseline

Revision ID: 20261019_01
Revises: None
Create Date: 2026-10-19
"""
# pylint: disable=no-member,invalid-name,wrong-import-order

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261019_01"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_SOURCE_TYPES = (
    "DEPOSIT",
    "WITHDRAW",
    "TRANSFER_IN",
    "TRANSFER_OUT",
    "TRADE_PNL",
    "COMMISSION",
    "SWAP",
    "ADJUSTMENT",
    "BONUS",
    "BONUS_REMOVAL",
)


def upgrade() -> None:
    """Upgrade schema."""

    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "balance_ledger_entry",
        sa.Column("ledger_entry_id", sa.BigInteger(), sa.Identity(always=True), primary_key=True),
        sa.Column("balance_account_id", sa.Text(), nullable=False),
        sa.Column("source_type", sa.Text(), nullable=False),
        sa.Column("source_ref_id", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(24, 8), nullable=False),
        sa.Column("currency", sa.Text(), nullable=False),
        sa.Column("occurred_at_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("balance_after", sa.Numeric(24, 8), nullable=False, server_default=sa.text("0")),
        sa.Column("meta", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.CheckConstraint(
            "source_type IN (" + ", ".join(f"'{source_type}'" for source_type in _SOURCE_TYPES) + ")",
            name="ck_balance_ledger_entry_source_type",
        ),
    )
    op.create_index(
        "ix_balance_ledger_entry_account_canonical_order",
        "balance_ledger_entry",
        ["balance_account_id", "occurred_at_utc", "created_at_utc", "ledger_entry_id"],
    )
    op.create_index(
        "ix_balance_ledger_entry_source_ref",
        "balance_ledger_entry",
        ["source_type", "source_ref_id"],
    )

    op.create_table(
        "balance_snapshot_daily",
        sa.Column(
            "balance_snapshot_daily_id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("balance_account_id", sa.Text(), nullable=False),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column("opening_balance", sa.Numeric(24, 8), nullable=False),
        sa.Column("closing_balance", sa.Numeric(24, 8), nullable=False),
        sa.Column("net_change", sa.Numeric(24, 8), nullable=False),
        sa.Column("deposit_amount", sa.Numeric(24, 8), nullable=False, server_default=sa.text("0")),
        sa.Column("withdraw_amount", sa.Numeric(24, 8), nullable=False, server_default=sa.text("0")),
        sa.Column("transfer_in_amount", sa.Numeric(24, 8), nullable=False, server_default=sa.text("0")),
        sa.Column("transfer_out_amount", sa.Numeric(24, 8), nullable=False, server_default=sa.text("0")),
        sa.Column("trading_net_result", sa.Numeric(24, 8), nullable=False, server_default=sa.text("0")),
        sa.Column("adjustment_amount", sa.Numeric(24, 8), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("balance_account_id", "snapshot_date", name="uq_balance_snapshot_daily_account_date"),
    )
    op.create_index("ix_balance_snapshot_daily_snapshot_date", "balance_snapshot_daily", ["snapshot_date"])


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_index("ix_balance_snapshot_daily_snapshot_date", table_name="balance_snapshot_daily")
    op.drop_table("balance_snapshot_daily")
    op.drop_index("ix_balance_ledger_entry_source_ref", table_name="balance_ledger_entry")
    op.drop_index("ix_balance_ledger_entry_account_canonical_order", table_name="balance_ledger_entry")
    op.drop_table("balance_ledger_entry")
