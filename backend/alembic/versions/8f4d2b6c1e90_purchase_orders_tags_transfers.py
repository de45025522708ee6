"""purchase orders, tags, per-location batches

Revision ID: 8f4d2b6c1e90
Revises: 3c1a9e0b7d21
Create Date: 2026-10-18 16:41:07.530112

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8f4d2b6c1e90"
down_revision: Union[str, Sequence[str], None] = "3c1a9e0b7d21"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _index(table: str, *columns: str, unique: bool = False) -> None:
    name = op.f(f"ix_{table}_{'_'.join(columns)}")
    op.create_index(name, table, list(columns), unique=unique)


def upgrade() -> None:
    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id"), nullable=False),
        sa.Column("order_number", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("order_date", sa.DateTime(), nullable=True),
        sa.Column("expected_date", sa.Date(), nullable=True),
        sa.Column("received_date", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("tax", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("shipping_cost", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("tenant_id", "order_number", name="uq_purchase_orders_tenant_number"),
    )
    _index("purchase_orders", "id")
    _index("purchase_orders", "tenant_id")
    _index("purchase_orders", "supplier_id")
    _index("purchase_orders", "status")
    _index("purchase_orders", "created_at")

    op.create_table(
        "purchase_order_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column(
            "purchase_order_id",
            sa.Integer(),
            sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "product_id",
            sa.Integer(),
            sa.ForeignKey("products.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("product_name", sa.String(), nullable=False),
        sa.Column("sku", sa.String(), nullable=True),
        sa.Column("ordered_quantity", sa.Integer(), nullable=False),
        sa.Column("received_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unit_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_cost", sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint("ordered_quantity > 0", name="ck_po_item_ordered_positive"),
        sa.CheckConstraint(
            "received_quantity >= 0 AND received_quantity <= ordered_quantity",
            name="ck_po_item_received_in_range",
        ),
    )
    _index("purchase_order_items", "id")
    _index("purchase_order_items", "tenant_id")
    _index("purchase_order_items", "purchase_order_id")
    _index("purchase_order_items", "product_id")

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("tenant_id", "name", name="uq_tags_tenant_name"),
    )
    _index("tags", "id")
    _index("tags", "tenant_id")

    op.create_table(
        "product_tags",
        sa.Column(
            "product_id",
            sa.Integer(),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "tag_id",
            sa.Integer(),
            sa.ForeignKey("tags.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    # a transfer splits a lot across locations under the same number
    with op.batch_alter_table("batches") as batch_op:
        batch_op.drop_constraint("uq_batches_product_number", type_="unique")
        batch_op.create_unique_constraint(
            "uq_batches_product_number_location",
            ["tenant_id", "product_id", "batch_number", "location_id"],
        )

    with op.batch_alter_table("stock_movements") as batch_op:
        batch_op.add_column(sa.Column("location_id", sa.Integer(), nullable=True))
        batch_op.create_foreign_key(
            "fk_stock_movements_location_id",
            "locations",
            ["location_id"],
            ["id"],
            ondelete="SET NULL",
        )
        batch_op.create_index(op.f("ix_stock_movements_location_id"), ["location_id"])


def downgrade() -> None:
    with op.batch_alter_table("stock_movements") as batch_op:
        batch_op.drop_index(op.f("ix_stock_movements_location_id"))
        batch_op.drop_constraint("fk_stock_movements_location_id", type_="foreignkey")
        batch_op.drop_column("location_id")

    with op.batch_alter_table("batches") as batch_op:
        batch_op.drop_constraint("uq_batches_product_number_location", type_="unique")
        batch_op.create_unique_constraint(
            "uq_batches_product_number",
            ["tenant_id", "product_id", "batch_number"],
        )

    for table in ("product_tags", "tags", "purchase_order_items", "purchase_orders"):
        op.drop_table(table)
