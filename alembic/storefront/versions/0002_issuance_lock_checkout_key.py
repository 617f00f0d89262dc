"""serialize passcode issuance and add checkout idempotency key

Revision ID: 0002_issuance_lock_checkout_key
Revises: 0001_storefront
Create Date: 2026-09-16
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_issuance_lock_checkout_key"
down_revision = "0001_storefront"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "passcode_cooldowns",
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("last_issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("email"),
    )
    # Seed from existing challenges so the cooldown holds across the deploy.
    op.execute(
        "INSERT INTO passcode_cooldowns (email, last_issued_at) "
        "SELECT email, MAX(created_at) FROM passcode_challenges GROUP BY email"
    )

    op.add_column("orders", sa.Column("checkout_key", sa.String(), nullable=True))
    op.create_unique_constraint(
        "uq_orders_checkout_line",
        "orders",
        ["customer_email", "checkout_key", "line_number"],
    )


def downgrade() -> None:
    op.drop_constraint("uq_orders_checkout_line", "orders", type_="unique")
    op.drop_column("orders", "checkout_key")
    op.drop_table("passcode_cooldowns")
