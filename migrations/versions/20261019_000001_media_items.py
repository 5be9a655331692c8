from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261019_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    media_type_enum = sa.Enum("photo", "video", name="mediatype")

    op.create_table(
        "households",
        sa.Column("household_id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "media_items",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "household_id",
            sa.String(length=64),
            sa.ForeignKey("households.household_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("uploader_id", sa.String(length=128), nullable=True),
        sa.Column("path", sa.String(length=2048), nullable=False),
        sa.Column("type", media_type_enum, nullable=False),
        sa.Column("mime_type", sa.String(length=255), nullable=True),
        sa.Column("size_bytes", sa.BigInteger(), nullable=True),
        sa.Column("sha256", sa.String(length=64), nullable=True),
        sa.Column("original_filename", sa.String(length=1024), nullable=True),
        sa.Column("preview_path", sa.String(length=2048), nullable=True),
        sa.Column("thumbnail_path", sa.String(length=2048), nullable=True),
        sa.Column("web_path", sa.String(length=2048), nullable=True),
        sa.Column("taken_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("duration_sec", sa.Integer(), nullable=True),
        sa.Column("camera_make", sa.String(length=255), nullable=True),
        sa.Column("camera_model", sa.String(length=255), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("orientation", sa.Integer(), nullable=True),
        sa.Column("iso", sa.Integer(), nullable=True),
        sa.Column("f_number", sa.Float(), nullable=True),
        sa.Column("exposure_time", sa.String(length=32), nullable=True),
        sa.Column("focal_length", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("household_id", "path", name="uq_media_items_household_path"),
    )
    op.create_index("ix_media_items_household_type", "media_items", ["household_id", "type"])
    op.create_index(
        "ix_media_items_household_taken",
        "media_items",
        ["household_id", sa.text("coalesce(taken_at, created_at) DESC")],
    )


def downgrade() -> None:
    op.drop_index("ix_media_items_household_taken", table_name="media_items")
    op.drop_index("ix_media_items_household_type", table_name="media_items")
    op.drop_table("media_items")
    op.drop_table("households")
    sa.Enum(name="mediatype").drop(op.get_bind(), checkfirst=True)
