"""initial schema: tenants, catalog, transaction log

Revision ID: 3f2a9c1d7b10
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

transaction_type = sa.Enum("IN", "OUT", name="transaction_type")


def _pk() -> sa.Column:
    return sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True)


def _tenant_fk() -> sa.Column:
    return sa.Column(
        "entreprise_id",
        sa.BigInteger(),
        sa.ForeignKey("entreprises.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "entreprises",
        _pk(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        _created_at(),
    )

    op.create_table(
        "categories",
        _pk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        _tenant_fk(),
        _created_at(),
    )

    op.create_table(
        "sub_categories",
        _pk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "category_id",
            sa.BigInteger(),
            sa.ForeignKey("categories.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        _tenant_fk(),
        _created_at(),
    )

    op.create_table(
        "products",
        _pk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("image_url", sa.String(500), nullable=False, server_default=""),
        sa.Column("unit", sa.String(32), nullable=False, server_default=""),
        sa.Column("reference", sa.String(64), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "category_id",
            sa.BigInteger(),
            sa.ForeignKey("categories.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "sub_category_id",
            sa.BigInteger(),
            sa.ForeignKey("sub_categories.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        _tenant_fk(),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_product_quantity_nonneg"),
    )
    op.create_index("ix_products_entreprise_name", "products", ["entreprise_id", "name"])

    op.create_table(
        "destinations",
        _pk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _tenant_fk(),
        _created_at(),
    )

    op.create_table(
        "transactions",
        _pk(),
        sa.Column("type", transaction_type, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column(
            "product_id",
            sa.BigInteger(),
            sa.ForeignKey("products.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "destination_id",
            sa.BigInteger(),
            sa.ForeignKey("destinations.id", ondelete="RESTRICT"),
            nullable=True,
            index=True,
        ),
        _tenant_fk(),
        _created_at(),
        sa.CheckConstraint("quantity > 0", name="ck_transaction_qty_pos"),
    )
    op.create_index("ix_transactions_entreprise_time", "transactions", ["entreprise_id", "created_at"])
    op.create_index("ix_transactions_product_time", "transactions", ["product_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_transactions_product_time", table_name="transactions")
    op.drop_index("ix_transactions_entreprise_time", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("destinations")
    op.drop_index("ix_products_entreprise_name", table_name="products")
    op.drop_table("products")
    op.drop_table("sub_categories")
    op.drop_table("categories")
    op.drop_table("entreprises")
    transaction_type.drop(op.get_bind(), checkfirst=True)
