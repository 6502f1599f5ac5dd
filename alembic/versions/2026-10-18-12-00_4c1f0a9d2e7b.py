"""Create the equivalence cache and housekeeping tables

Revision ID: 4c1f0a9d2e7b
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "4c1f0a9d2e7b"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "id_mappings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("content_type", sa.String, nullable=False),
        sa.Column("tmdb_id", sa.String, nullable=True),
        sa.Column("tvdb_id", sa.String, nullable=True),
        sa.Column("imdb_id", sa.String, nullable=True),
        sa.Column("tvmaze_id", sa.String, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )

    op.create_index("ix_id_mappings_content_type", "id_mappings", ["content_type"])
    op.create_index("ix_id_mappings_tmdb_id", "id_mappings", ["tmdb_id"])
    op.create_index("ix_id_mappings_tvdb_id", "id_mappings", ["tvdb_id"])
    op.create_index("ix_id_mappings_imdb_id", "id_mappings", ["imdb_id"])
    op.create_index("ix_id_mappings_tvmaze_id", "id_mappings", ["tvmaze_id"])
    op.create_index("ix_id_mappings_updated_at", "id_mappings", ["updated_at"])

    op.create_table(
        "house_keeping",
        sa.Column("key", sa.String, primary_key=True),
        sa.Column("value", sa.String, nullable=True),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    )


def downgrade() -> None:
    op.drop_table("house_keeping")

    op.drop_index("ix_id_mappings_updated_at", table_name="id_mappings")
    op.drop_index("ix_id_mappings_tvmaze_id", table_name="id_mappings")
    op.drop_index("ix_id_mappings_imdb_id", table_name="id_mappings")
    op.drop_index("ix_id_mappings_tvdb_id", table_name="id_mappings")
    op.drop_index("ix_id_mappings_tmdb_id", table_name="id_mappings")
    op.drop_index("ix_id_mappings_content_type", table_name="id_mappings")
    op.drop_table("id_mappings")
