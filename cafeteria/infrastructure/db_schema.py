from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
)
from sqlalchemy.sql import func

from cafeteria.domain.loyalty import TransactionType
from cafeteria.domain.models import MenuCategory, OrderStatus

metadata = MetaData()


menu_items_tbl = Table(
    "menu_items",
    metadata,
    Column("item_id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("price", Numeric(10, 2), nullable=False),
    Column("category", Enum(MenuCategory), nullable=False),
    Column("available", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)


orders_tbl = Table(
    "orders",
    metadata,
    Column("order_id", String, primary_key=True),
    Column("student_id", String, nullable=False, index=True),
    Column("status", Enum(OrderStatus), nullable=False, default=OrderStatus.PENDING, index=True),
    Column("total_amount", Numeric(10, 2), nullable=False, default=0),
    Column("discount_amount", Numeric(10, 2), nullable=False, default=0),
    Column("points_earned", Integer, nullable=False, default=0),
    Column("points_redeemed", Integer, nullable=False, default=0),
    Column("order_time", DateTime(timezone=True), nullable=False),
    Column("status_updated_time", DateTime(timezone=True), nullable=False),
    Column("notes", Text, nullable=False, default="")
)


# Lines keep a snapshot of the menu item as it was when added to the order.
order_lines_tbl = Table(
    "order_lines",
    metadata,
    Column("order_id", String, ForeignKey("orders.order_id", ondelete="CASCADE"), primary_key=True),
    Column("position", Integer, primary_key=True),
    Column("item_id", String, nullable=False),
    Column("item_name", String, nullable=False),
    Column("item_description", Text, nullable=False, default=""),
    Column("unit_price", Numeric(10, 2), nullable=False),
    Column("category", Enum(MenuCategory), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("free", Boolean, nullable=False, default=False),
    Column("subtotal", Numeric(10, 2), nullable=False)
)


loyalty_accounts_tbl = Table(
    "loyalty_accounts",
    metadata,
    Column("student_id", String, primary_key=True),
    Column("points_balance", Integer, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
)


loyalty_transactions_tbl = Table(
    "loyalty_transactions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("student_id", String, ForeignKey("loyalty_accounts.student_id"), nullable=False, index=True),
    Column("type", Enum(TransactionType), nullable=False),
    Column("points", Integer, nullable=False),
    Column("description", Text, nullable=False),
    Column("timestamp", DateTime(timezone=True), nullable=False)
)
