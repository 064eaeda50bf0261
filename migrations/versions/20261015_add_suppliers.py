"""Add the suppliers table.

Revision ID: 20261015_add_suppliers
Revises: 20261001_create_inventory_schema
Create Date: 2026-10-15 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261015_add_suppliers"
down_revision = "20261001_create_inventory_schema"
branch_labels = None
depends_on = None


SUPPLIER_STATUSES = ("active", "inactive", "pending")


def upgrade() -> None:
    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("contact_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("website", sa.String(length=1024), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*SUPPLIER_STATUSES, name="supplier_status"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "rating IS NULL OR (rating >= 1 AND rating <= 5)",
            name="ck_suppliers_rating_range",
        ),
    )


def downgrade() -> None:
    op.drop_table("suppliers")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute("DROP TYPE IF EXISTS supplier_status")
