"""Create the inventory and stock ledger tables.

Revision ID: 20261001_create_inventory_schema
Revises:
Create Date: 2026-10-01 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261001_create_inventory_schema"
down_revision = None
branch_labels = None
depends_on = None


USER_ROLES = ("admin", "inventory_manager", "warehouse_staff", "department_user")
ITEM_STATUSES = ("in_stock", "low_stock", "out_of_stock", "discontinued")
ENTRY_STATUSES = ("in_stock", "ordered")
TRANSACTION_TYPES = ("receive", "withdraw", "transfer", "dispose", "adjust")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("role", sa.Enum(*USER_ROLES, name="user_role"), nullable=False),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("category", sa.String(length=255), nullable=False),
        sa.Column("subcategory", sa.String(length=255), nullable=False),
    )

    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("building", sa.String(length=255), nullable=True),
        sa.Column("room", sa.String(length=255), nullable=True),
        sa.Column("unit", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sku", sa.String(length=120), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("manufacturer", sa.String(length=255), nullable=False),
        sa.Column("model", sa.String(length=255), nullable=True),
        sa.Column("serial_number", sa.String(length=255), nullable=True),
        sa.Column("minimum_stock", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("maximum_stock", sa.Integer(), nullable=True),
        sa.Column("unit_cost", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum(*ITEM_STATUSES, name="item_status"),
            nullable=False,
            server_default="out_of_stock",
        ),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("image_url", sa.String(length=1024), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "minimum_stock IS NULL OR minimum_stock >= 0",
            name="ck_items_minimum_stock_non_negative",
        ),
    )

    op.create_table(
        "item_locations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("purchased_date", sa.DateTime(), nullable=True),
        sa.Column("warranty_expiration", sa.DateTime(), nullable=True),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "status",
            sa.Enum(*ENTRY_STATUSES, name="item_location_status"),
            nullable=False,
            server_default="in_stock",
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("item_id", "location_id", name="uq_item_locations_item_location"),
        sa.CheckConstraint("quantity >= 0", name="ck_item_locations_quantity_non_negative"),
    )
    op.create_index("ix_item_locations_item_id", "item_locations", ["item_id"])
    op.create_index("ix_item_locations_location_id", "item_locations", ["location_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type", sa.Enum(*TRANSACTION_TYPES, name="transaction_type"), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("from_location_id", sa.Integer(), nullable=True),
        sa.Column("to_location_id", sa.Integer(), nullable=True),
        sa.Column("performed_by", sa.Integer(), nullable=False),
        sa.Column(
            "performed_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("project_id", sa.String(length=255), nullable=True),
        sa.Column("purpose", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.ForeignKeyConstraint(["from_location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["to_location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["performed_by"], ["users.id"]),
    )
    op.create_index("ix_transactions_item_id", "transactions", ["item_id"])
    op.create_index("ix_transactions_performed_at", "transactions", ["performed_at"])


def downgrade() -> None:
    op.drop_index("ix_transactions_performed_at", table_name="transactions")
    op.drop_index("ix_transactions_item_id", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_item_locations_location_id", table_name="item_locations")
    op.drop_index("ix_item_locations_item_id", table_name="item_locations")
    op.drop_table("item_locations")
    op.drop_table("items")
    op.drop_table("locations")
    op.drop_table("categories")
    op.drop_table("users")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for enum_name in ("transaction_type", "item_location_status", "item_status", "user_role"):
            op.execute(f"DROP TYPE IF EXISTS {enum_name}")
