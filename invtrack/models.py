from datetime import datetime
from decimal import Decimal

from invtrack.extensions import db

# Largest value an Integer column holds on PostgreSQL.
MAX_DB_INTEGER = 2**31 - 1


def _isoformat(value):
    if value is None:
        return None
    return value.isoformat()


def _decimal_to_string(value):
    if value is None:
        return None
    return f"{Decimal(value):.2f}"


class UserRole:
    ADMIN = "admin"
    INVENTORY_MANAGER = "inventory_manager"
    WAREHOUSE_STAFF = "warehouse_staff"
    DEPARTMENT_USER = "department_user"

    ALL_ROLES = [ADMIN, INVENTORY_MANAGER, WAREHOUSE_STAFF, DEPARTMENT_USER]


class ItemStatus:
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"

    ALL_STATUSES = [IN_STOCK, LOW_STOCK, OUT_OF_STOCK, DISCONTINUED]
    ALERT_STATES = {LOW_STOCK, OUT_OF_STOCK}


class StockEntryStatus:
    IN_STOCK = "in_stock"
    ORDERED = "ordered"

    ALL_STATUSES = [IN_STOCK, ORDERED]


class SupplierStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"

    ALL_STATUSES = [ACTIVE, INACTIVE, PENDING]


class TransactionType:
    RECEIVE = "receive"
    WITHDRAW = "withdraw"
    TRANSFER = "transfer"
    DISPOSE = "dispose"
    ADJUST = "adjust"

    ALL_TYPES = [RECEIVE, WITHDRAW, TRANSFER, DISPOSE, ADJUST]


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(
        db.Enum(*UserRole.ALL_ROLES, name="user_role"),
        nullable=False,
        default=UserRole.DEPARTMENT_USER,
    )
    department = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "department": self.department,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(255), nullable=False)
    subcategory = db.Column(db.String(255), nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "category": self.category,
            "subcategory": self.subcategory,
        }


class Location(db.Model):
    __tablename__ = "locations"

    id = db.Column(db.Integer, primary_key=True)
    building = db.Column(db.String(255), nullable=True)
    room = db.Column(db.String(255), nullable=True)
    unit = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    stock_entries = db.relationship(
        "ItemLocation",
        back_populates="location",
        cascade="all, delete-orphan",
    )

    @property
    def label(self) -> str:
        parts = [part for part in (self.building, self.room, self.unit) if part]
        return " / ".join(parts)

    def to_dict(self):
        return {
            "id": self.id,
            "building": self.building,
            "room": self.room,
            "unit": self.unit,
            "label": self.label,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


class Supplier(db.Model):
    __tablename__ = "suppliers"

    __table_args__ = (
        db.CheckConstraint(
            "rating IS NULL OR (rating >= 1 AND rating <= 5)",
            name="ck_suppliers_rating_range",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    website = db.Column(db.String(1024), nullable=True)
    status = db.Column(
        db.Enum(*SupplierStatus.ALL_STATUSES, name="supplier_status"),
        nullable=False,
        default=SupplierStatus.ACTIVE,
    )
    rating = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "website": self.website,
            "status": self.status,
            "rating": self.rating,
            "notes": self.notes,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


class Item(db.Model):
    __tablename__ = "items"

    __table_args__ = (
        db.CheckConstraint(
            "minimum_stock IS NULL OR minimum_stock >= 0",
            name="ck_items_minimum_stock_non_negative",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(120), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    manufacturer = db.Column(db.String(255), nullable=False)
    model = db.Column(db.String(255), nullable=True)
    serial_number = db.Column(db.String(255), nullable=True)
    minimum_stock = db.Column(db.Integer, nullable=True, default=0)
    maximum_stock = db.Column(db.Integer, nullable=True)
    unit_cost = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    status = db.Column(
        db.Enum(*ItemStatus.ALL_STATUSES, name="item_status"),
        nullable=False,
        default=ItemStatus.OUT_OF_STOCK,
    )
    category_id = db.Column(
        db.Integer,
        db.ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
    )
    image_url = db.Column(db.String(1024), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    category = db.relationship("Category", backref="items")
    stock_entries = db.relationship(
        "ItemLocation",
        back_populates="item",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "manufacturer": self.manufacturer,
            "model": self.model,
            "serial_number": self.serial_number,
            "minimum_stock": self.minimum_stock,
            "maximum_stock": self.maximum_stock,
            "unit_cost": _decimal_to_string(self.unit_cost),
            "status": self.status,
            "category_id": self.category_id,
            "image_url": self.image_url,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


class ItemLocation(db.Model):
    """One ledger row: the quantity of an item held at a location."""

    __tablename__ = "item_locations"

    __table_args__ = (
        db.UniqueConstraint("item_id", "location_id", name="uq_item_locations_item_location"),
        db.CheckConstraint("quantity >= 0", name="ck_item_locations_quantity_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(
        db.Integer,
        db.ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    location_id = db.Column(
        db.Integer,
        db.ForeignKey("locations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quantity = db.Column(db.Integer, nullable=False, default=0)
    purchased_date = db.Column(db.DateTime, nullable=True)
    warranty_expiration = db.Column(db.DateTime, nullable=True)
    is_paid = db.Column(db.Boolean, nullable=False, default=True)
    status = db.Column(
        db.Enum(*StockEntryStatus.ALL_STATUSES, name="item_location_status"),
        nullable=False,
        default=StockEntryStatus.IN_STOCK,
    )
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    item = db.relationship("Item", back_populates="stock_entries")
    location = db.relationship("Location", back_populates="stock_entries")

    def to_dict(self):
        return {
            "id": self.id,
            "item_id": self.item_id,
            "location_id": self.location_id,
            "quantity": self.quantity,
            "purchased_date": _isoformat(self.purchased_date),
            "warranty_expiration": _isoformat(self.warranty_expiration),
            "is_paid": self.is_paid,
            "status": self.status,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


class Transaction(db.Model):
    """Append-only record of a stock movement."""

    __tablename__ = "transactions"

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(
        db.Enum(*TransactionType.ALL_TYPES, name="transaction_type"),
        nullable=False,
    )
    item_id = db.Column(
        db.Integer,
        db.ForeignKey("items.id"),
        nullable=False,
        index=True,
    )
    quantity = db.Column(db.Integer, nullable=False)
    from_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True)
    to_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True)
    performed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    performed_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    notes = db.Column(db.Text, nullable=True)
    project_id = db.Column(db.String(255), nullable=True)
    purpose = db.Column(db.String(255), nullable=True)

    item = db.relationship("Item", backref="transactions")
    from_location = db.relationship("Location", foreign_keys=[from_location_id])
    to_location = db.relationship("Location", foreign_keys=[to_location_id])
    performer = db.relationship("User", backref="transactions")

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "item_id": self.item_id,
            "quantity": self.quantity,
            "from_location_id": self.from_location_id,
            "to_location_id": self.to_location_id,
            "performed_by": self.performed_by,
            "performed_at": _isoformat(self.performed_at),
            "notes": self.notes,
            "project_id": self.project_id,
            "purpose": self.purpose,
        }
