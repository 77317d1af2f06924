"""Initial storefront schema.

Creates catalog, account, ownership, community, token and audit tables,
and seeds the fixed roles and app types.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _last_modified() -> sa.Column:
    return sa.Column("last_modified", sa.DateTime(timezone=True), nullable=True)


def upgrade() -> None:
    """Create all tables."""
    # --- Lookups ---
    roles = op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("role_name", sa.String(32), nullable=False, unique=True),
    )
    app_types = op.create_table(
        "app_types",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("type_name", sa.String(64), nullable=False, unique=True),
        _last_modified(),
    )
    op.create_table(
        "genres",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("genre_name", sa.String(128), nullable=False),
        sa.Column("external_genre_id", sa.Integer(), nullable=True, unique=True),
        _last_modified(),
    )
    op.create_table(
        "developers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(256), nullable=False, unique=True),
        _last_modified(),
    )
    op.create_table(
        "publishers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(256), nullable=False, unique=True),
        _last_modified(),
    )

    # --- Apps ---
    op.create_table(
        "apps",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("app_type_id", sa.Integer(), sa.ForeignKey("app_types.id"), nullable=False),
        sa.Column("base_app_id", sa.Integer(), sa.ForeignKey("apps.id", ondelete="SET NULL"), nullable=True),
        sa.Column("app_name", sa.String(256), nullable=False),
        sa.Column("release_date", sa.String(64), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("purchase_count", sa.Integer(), server_default="0", nullable=False),
        _last_modified(),
    )
    op.create_index("ix_apps_base_app_id", "apps", ["base_app_id"])
    op.create_index("ix_apps_app_name", "apps", ["app_name"])

    for table, column, target in (
        ("app_genres", "genre_id", "genres.id"),
        ("app_developers", "developer_id", "developers.id"),
        ("app_publishers", "publisher_id", "publishers.id"),
    ):
        op.create_table(
            table,
            sa.Column("app_id", sa.Integer(), sa.ForeignKey("apps.id", ondelete="CASCADE"), primary_key=True),
            sa.Column(column, sa.Integer(), sa.ForeignKey(target, ondelete="CASCADE"), primary_key=True),
        )

    op.create_table(
        "app_images",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("app_id", sa.Integer(), sa.ForeignKey("apps.id", ondelete="CASCADE"), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("image_type", sa.String(32), nullable=False),
        _last_modified(),
    )
    op.create_index("ix_app_images_app_id", "app_images", ["app_id"])
    op.create_table(
        "app_videos",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("app_id", sa.Integer(), sa.ForeignKey("apps.id", ondelete="CASCADE"), nullable=False),
        sa.Column("video_url", sa.Text(), nullable=False),
        sa.Column("thumbnail_url", sa.Text(), nullable=False),
        _last_modified(),
    )
    op.create_index("ix_app_videos_app_id", "app_videos", ["app_id"])

    # --- Users ---
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("google_id", sa.String(128), nullable=True, unique=True),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id"), nullable=False),
        sa.Column("username", sa.String(20), nullable=False, unique=True),
        sa.Column("display_name", sa.String(30), nullable=True),
        sa.Column("password_hash", sa.String(256), nullable=True),
        sa.Column("profile_picture", sa.Text(), nullable=True),
        sa.Column("email", sa.String(320), nullable=True, unique=True),
        sa.Column("points", sa.Integer(), server_default="0", nullable=False),
        sa.Column("wallet", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("is_email_verified", sa.Boolean(), server_default=sa.false(), nullable=True),
        sa.Column("is_google_authenticated", sa.Boolean(), server_default=sa.false(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        _last_modified(),
    )

    # --- Ownership ---
    def owned_by_user(name: str, *extra: sa.Column, unique: bool = True) -> None:
        args: list = [
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            *extra,
            _last_modified(),
        ]
        if unique:
            args.append(sa.UniqueConstraint("user_id", "app_id", name=f"uq_{name}_user_app"))
        op.create_table(name, *args)
        op.create_index(f"ix_{name}_user_id", name, ["user_id"])

    owned_by_user(
        "cart_items",
        sa.Column("app_id", sa.Integer(), sa.ForeignKey("apps.id", ondelete="CASCADE"), nullable=False),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=True),
    )
    owned_by_user(
        "app_library",
        sa.Column("app_id", sa.Integer(), sa.ForeignKey("apps.id", ondelete="CASCADE"), nullable=False),
        sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=True),
    )
    owned_by_user(
        "wishlist",
        sa.Column("app_id", sa.Integer(), sa.ForeignKey("apps.id", ondelete="CASCADE"), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    owned_by_user(
        "purchase_history",
        sa.Column("app_id", sa.Integer(), sa.ForeignKey("apps.id", ondelete="SET NULL"), nullable=True),
        sa.Column("purchase_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("price_at_purchase", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_method", sa.String(64), nullable=False),
        sa.Column("wallet_change", sa.Numeric(10, 2), nullable=True),
        sa.Column("wallet_balance_after", sa.Numeric(10, 2), nullable=True),
        unique=False,
    )

    # --- Reviews & community ---
    op.create_table(
        "app_reviews",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("app_id", sa.Integer(), sa.ForeignKey("apps.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("user_display_name", sa.String(30), nullable=False),
        sa.Column("is_recommended", sa.Boolean(), nullable=False),
        sa.Column("review_text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_edited", sa.Boolean(), server_default=sa.false(), nullable=True),
        _last_modified(),
        sa.UniqueConstraint("user_id", "app_id", name="uq_app_reviews_user_app"),
    )
    op.create_index("ix_app_reviews_app_id", "app_reviews", ["app_id"])

    op.create_table(
        "posts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("user_display_name", sa.String(30), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("app_id", sa.Integer(), sa.ForeignKey("apps.id", ondelete="CASCADE"), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        _last_modified(),
    )
    op.create_index("ix_posts_created_at", "posts", ["created_at"])
    op.create_table(
        "post_comments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("user_display_name", sa.String(30), nullable=False),
        sa.Column("comment_text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_edited", sa.Boolean(), server_default=sa.false(), nullable=True),
        _last_modified(),
    )
    op.create_index("ix_post_comments_post_id", "post_comments", ["post_id"])
    op.create_table(
        "post_likes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("liked_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),
    )
    op.create_index("ix_post_likes_post_id", "post_likes", ["post_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), server_default=sa.false(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        _last_modified(),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    # --- Tokens ---
    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token_hash", sa.String(128), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("is_revoked", sa.Boolean(), server_default=sa.false(), nullable=True),
        sa.Column("replaced_by", sa.String(36), nullable=True),
    )
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])

    for table in ("email_verification_tokens", "password_reset_tokens"):
        columns = [
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("token_hash", sa.String(128), nullable=False, unique=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        ]
        if table == "password_reset_tokens":
            columns.append(sa.Column("ip_address", sa.String(45), nullable=True))
        op.create_table(table, *columns)

    op.create_table(
        "email_change_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("new_email", sa.String(320), nullable=False),
        sa.Column("token_hash", sa.String(128), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "payment_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.String(255), nullable=False, unique=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("token_hash", sa.String(128), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )

    # --- Audit ---
    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("table_name", sa.String(64), nullable=False),
        sa.Column("operation_type", sa.String(8), nullable=False),
        sa.Column("row_id", sa.String(64), nullable=True),
        sa.Column("operation_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("modified_by", sa.String(64), nullable=True),
    )
    op.create_index("ix_audit_log_table_name", "audit_log", ["table_name"])

    # --- Seed data (ids are referenced by vapor.db.models constants) ---
    op.bulk_insert(roles, [{"id": 1, "role_name": "User"}, {"id": 2, "role_name": "Admin"}])
    op.bulk_insert(
        app_types,
        [
            {"id": 1, "type_name": "Game"},
            {"id": 2, "type_name": "DLC"},
            {"id": 3, "type_name": "Soundtrack"},
            {"id": 4, "type_name": "Demo"},
        ],
    )


def downgrade() -> None:
    """Drop all tables."""
    for table in (
        "audit_log",
        "payment_tokens",
        "email_change_tokens",
        "password_reset_tokens",
        "email_verification_tokens",
        "refresh_tokens",
        "notifications",
        "post_likes",
        "post_comments",
        "posts",
        "app_reviews",
        "purchase_history",
        "wishlist",
        "app_library",
        "cart_items",
        "users",
        "app_videos",
        "app_images",
        "app_publishers",
        "app_developers",
        "app_genres",
        "apps",
        "publishers",
        "developers",
        "genres",
        "app_types",
        "roles",
    ):
        op.drop_table(table)
