"""Create products, notices and representatives tables

Revision ID: 001
Revises: None
Create Date: 2024-01-15 00:00:00.000000+00:00

What:  Initial schema for the three record types.
How:   Generic SQLAlchemy types only (Uuid, TIMESTAMP WITH TIME ZONE, JSON)
       so the migration runs on PostgreSQL and SQLite alike. Ids are
       generated by the application, not by a server default.

Image columns:
    image         public locator, "" when the record has no image
    image_handle  object-store key used to reclaim the image; never exposed

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _record_columns():
    return [
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def _image_columns():
    return [
        sa.Column("image", sa.String(1024), nullable=False, server_default=sa.text("''")),
        sa.Column("image_handle", sa.String(512), nullable=False, server_default=sa.text("''")),
    ]


def upgrade() -> None:
    op.create_table(
        "products",
        *_record_columns(),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("offer_price", sa.Float(), nullable=False),
        sa.Column("features", sa.JSON(), nullable=False),
        *_image_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "notices",
        *_record_columns(),
        sa.Column("title", sa.String(500), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "representatives",
        *_record_columns(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("facebook", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("twitter", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("instagram", sa.Text(), nullable=False, server_default=sa.text("''")),
        *_image_columns(),
        sa.PrimaryKeyConstraint("id"),
    )

    # Every list endpoint is ORDER BY created_at DESC
    for table in ("products", "notices", "representatives"):
        op.create_index(
            f"idx_{table}_created_at",
            table,
            [sa.text("created_at DESC")],
        )


def downgrade() -> None:
    """Drop all record tables. All data is lost."""
    for table in ("representatives", "notices", "products"):
        op.drop_index(f"idx_{table}_created_at", table_name=table)
        op.drop_table(table)
