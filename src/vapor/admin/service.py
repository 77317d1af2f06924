"""
Admin back-office operations.

Direct edits of users, the catalog and its lookup tables, plus read-only
listings of user-generated and ledger data.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from vapor.admin.schemas import LookupKind
from vapor.auth.service import delete_user, get_user_by_id, register_user
from vapor.community.service import remove_post
from vapor.db.models import (
    ROLE_ADMIN,
    ROLE_USER,
    App,
    AppLibrary,
    AppReview,
    AppType,
    AuditLog,
    CartItem,
    Developer,
    Genre,
    Notification,
    Post,
    PostComment,
    Publisher,
    PurchaseHistory,
    User,
    Wishlist,
    app_developers,
    app_genres,
    app_publishers,
)
from vapor.errors import ConflictError, NotFoundError, ValidationFailed

logger = structlog.get_logger()

DELETED_USER_LABEL = "Deleted User"

ROLES = {"User": ROLE_USER, "Admin": ROLE_ADMIN}

# kind -> (model, name column)
LOOKUPS: dict[LookupKind, tuple[type, str]] = {
    LookupKind.developers: (Developer, "name"),
    LookupKind.publishers: (Publisher, "name"),
    LookupKind.genres: (Genre, "genre_name"),
    LookupKind.app_types: (AppType, "type_name"),
}


def admin_author(user_id: int | None, stored_name: str) -> str:
    return stored_name if user_id is not None else DELETED_USER_LABEL


def _role_id(role: str) -> int:
    if role not in ROLES:
        msg = f"Unknown role: {role}"
        raise ValidationFailed(msg)
    return ROLES[role]


async def paginate(db: AsyncSession, stmt: Any, page: int, per_page: int) -> tuple[list[Any], int]:  # noqa: ANN401
    """Run a select with offset pagination. Returns ``(rows, total)``."""
    total = (await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))).scalar_one()
    result = await db.execute(stmt.offset((page - 1) * per_page).limit(per_page))
    return list(result.scalars().all()), total


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def list_users(db: AsyncSession, page: int, per_page: int) -> tuple[list[User], int]:
    return await paginate(db, select(User).order_by(User.id), page, per_page)


async def _user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await get_user_by_id(db, user_id)
    if user is None:
        msg = "User not found."
        raise NotFoundError(msg)
    return user


async def create_user(
    db: AsyncSession,
    username: str,
    display_name: str,
    email: str,
    password: str,
    role: str = "User",
) -> User:
    """
    Create a verified account.

    Raises:
        ConflictError: Username or email taken.
        ValidationFailed: Invalid field or role.
    """
    role_id = _role_id(role)
    user = await register_user(db, username, display_name, email, password)
    user.role_id = role_id
    user.is_email_verified = True
    await db.flush()
    logger.info("admin_user_created", user_id=user.id, role=role)
    return user


async def update_user(
    db: AsyncSession,
    user_id: int,
    *,
    role: str | None = None,
    wallet: Decimal | None = None,
    points: int | None = None,
    display_name: str | None = None,
) -> User:
    user = await _user_or_404(db, user_id)
    if role is not None:
        user.role_id = _role_id(role)
    if wallet is not None:
        user.wallet = wallet
    if points is not None:
        user.points = points
    if display_name is not None:
        user.display_name = display_name.strip() or None
    await db.flush()
    logger.info("admin_user_updated", user_id=user_id)
    return user


async def remove_user(db: AsyncSession, admin: User, user_id: int) -> None:
    """
    Raises:
        ValidationFailed: The admin tried to delete their own account.
        NotFoundError: Unknown user.
    """
    if user_id == admin.id:
        msg = "You cannot delete your own account from the admin panel."
        raise ValidationFailed(msg)
    user = await _user_or_404(db, user_id)
    await delete_user(db, user)


# ---------------------------------------------------------------------------
# Apps
# ---------------------------------------------------------------------------


async def _load_app(db: AsyncSession, app_id: int) -> App:
    result = await db.execute(
        select(App)
        .options(selectinload(App.genres), selectinload(App.developers), selectinload(App.publishers))
        .where(App.id == app_id)
    )
    app = result.scalar_one_or_none()
    if app is None:
        msg = "App not found."
        raise NotFoundError(msg)
    return app


async def list_apps(db: AsyncSession, page: int, per_page: int) -> tuple[list[App], int]:
    stmt = (
        select(App)
        .options(selectinload(App.genres), selectinload(App.developers), selectinload(App.publishers))
        .order_by(App.id)
    )
    return await paginate(db, stmt, page, per_page)


async def _by_ids(db: AsyncSession, model: type, ids: list[int]) -> list[Any]:
    if not ids:
        return []
    rows = list((await db.execute(select(model).where(model.id.in_(ids)))).scalars().all())
    if len(rows) != len(set(ids)):
        msg = f"Unknown {model.__tablename__} id."
        raise ValidationFailed(msg)
    return rows


async def _check_refs(db: AsyncSession, app_type_id: int | None, base_app_id: int | None) -> None:
    if app_type_id is not None and await db.get(AppType, app_type_id) is None:
        msg = "Unknown app type."
        raise ValidationFailed(msg)
    if base_app_id is not None and await db.get(App, base_app_id) is None:
        msg = "Unknown base app."
        raise ValidationFailed(msg)


async def create_app(db: AsyncSession, data: dict[str, Any]) -> App:
    await _check_refs(db, data["app_type_id"], data.get("base_app_id"))
    app = App(
        app_name=data["app_name"],
        app_type_id=data["app_type_id"],
        base_app_id=data.get("base_app_id"),
        release_date=data.get("release_date") or "",
        price=data.get("price"),
        description=data.get("description"),
        purchase_count=0,
    )
    app.genres = await _by_ids(db, Genre, data.get("genre_ids") or [])
    app.developers = await _by_ids(db, Developer, data.get("developer_ids") or [])
    app.publishers = await _by_ids(db, Publisher, data.get("publisher_ids") or [])
    db.add(app)
    await db.flush()
    logger.info("admin_app_created", app_id=app.id)
    return await _load_app(db, app.id)


async def update_app(db: AsyncSession, app_id: int, changes: dict[str, Any]) -> App:
    app = await _load_app(db, app_id)
    await _check_refs(db, changes.get("app_type_id"), changes.get("base_app_id"))
    if changes.get("base_app_id") == app_id:
        msg = "An app cannot be its own base app."
        raise ValidationFailed(msg)
    for field in ("app_name", "app_type_id", "base_app_id", "release_date", "price", "description"):
        if field in changes:
            setattr(app, field, changes[field])
    if changes.get("genre_ids") is not None:
        app.genres = await _by_ids(db, Genre, changes["genre_ids"])
    if changes.get("developer_ids") is not None:
        app.developers = await _by_ids(db, Developer, changes["developer_ids"])
    if changes.get("publisher_ids") is not None:
        app.publishers = await _by_ids(db, Publisher, changes["publisher_ids"])
    await db.flush()
    logger.info("admin_app_updated", app_id=app_id)
    return app


async def delete_app(db: AsyncSession, app_id: int) -> None:
    """Delete an app and every row that points at it. Ledger rows keep a NULL app."""
    app = await _load_app(db, app_id)
    posts = (await db.execute(select(Post).where(Post.app_id == app_id))).scalars().all()
    for post in posts:
        await remove_post(db, post)
    for model in (CartItem, AppLibrary, Wishlist, AppReview):
        await db.execute(delete(model).where(model.app_id == app_id))
    await db.execute(update(PurchaseHistory).where(PurchaseHistory.app_id == app_id).values(app_id=None))
    await db.execute(update(App).where(App.base_app_id == app_id).values(base_app_id=None))
    await db.delete(app)
    await db.flush()
    logger.info("admin_app_deleted", app_id=app_id)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def list_lookup(db: AsyncSession, kind: LookupKind) -> list[tuple[int, str]]:
    model, column = LOOKUPS[kind]
    result = await db.execute(select(model.id, getattr(model, column)).order_by(getattr(model, column)))
    return [(row[0], row[1]) for row in result.all()]


async def _lookup_or_404(db: AsyncSession, kind: LookupKind, item_id: int) -> Any:  # noqa: ANN401
    model, _ = LOOKUPS[kind]
    item = await db.get(model, item_id)
    if item is None:
        msg = "Not found."
        raise NotFoundError(msg)
    return item


async def _ensure_unique_name(db: AsyncSession, kind: LookupKind, name: str) -> None:
    model, column = LOOKUPS[kind]
    existing = await db.execute(select(model.id).where(getattr(model, column) == name))
    if existing.first() is not None:
        msg = f"{name} already exists."
        raise ConflictError(msg)


async def create_lookup(db: AsyncSession, kind: LookupKind, name: str) -> tuple[int, str]:
    model, column = LOOKUPS[kind]
    name = name.strip()
    await _ensure_unique_name(db, kind, name)
    item = model(**{column: name})
    db.add(item)
    await db.flush()
    return item.id, name


async def rename_lookup(db: AsyncSession, kind: LookupKind, item_id: int, name: str) -> tuple[int, str]:
    _, column = LOOKUPS[kind]
    item = await _lookup_or_404(db, kind, item_id)
    name = name.strip()
    if getattr(item, column) != name:
        await _ensure_unique_name(db, kind, name)
        setattr(item, column, name)
        await db.flush()
    return item.id, name


async def delete_lookup(db: AsyncSession, kind: LookupKind, item_id: int) -> None:
    """
    Raises:
        ConflictError: An app type that is still in use.
    """
    item = await _lookup_or_404(db, kind, item_id)
    if kind is LookupKind.app_types:
        in_use = await db.execute(select(App.id).where(App.app_type_id == item_id).limit(1))
        if in_use.first() is not None:
            msg = "App type is still in use."
            raise ConflictError(msg)
    elif kind is LookupKind.genres:
        await db.execute(delete(app_genres).where(app_genres.c.genre_id == item_id))
    elif kind is LookupKind.developers:
        await db.execute(delete(app_developers).where(app_developers.c.developer_id == item_id))
    else:
        await db.execute(delete(app_publishers).where(app_publishers.c.publisher_id == item_id))
    await db.delete(item)
    await db.flush()


# ---------------------------------------------------------------------------
# Read-only listings
# ---------------------------------------------------------------------------


async def list_posts(db: AsyncSession, page: int, per_page: int) -> tuple[list[Post], int]:
    return await paginate(db, select(Post).order_by(Post.created_at.desc(), Post.id.desc()), page, per_page)


async def list_comments(db: AsyncSession, page: int, per_page: int) -> tuple[list[PostComment], int]:
    stmt = select(PostComment).order_by(PostComment.created_at.desc(), PostComment.id.desc())
    return await paginate(db, stmt, page, per_page)


async def list_reviews(db: AsyncSession, page: int, per_page: int) -> tuple[list[AppReview], int]:
    stmt = select(AppReview).order_by(AppReview.created_at.desc(), AppReview.id.desc())
    return await paginate(db, stmt, page, per_page)


async def list_cart_items(db: AsyncSession, page: int, per_page: int) -> tuple[list[CartItem], int]:
    return await paginate(db, select(CartItem).order_by(CartItem.id), page, per_page)


async def list_wishlists(db: AsyncSession, page: int, per_page: int) -> tuple[list[Wishlist], int]:
    stmt = select(Wishlist).order_by(Wishlist.user_id, Wishlist.priority)
    return await paginate(db, stmt, page, per_page)


async def list_libraries(db: AsyncSession, page: int, per_page: int) -> tuple[list[AppLibrary], int]:
    return await paginate(db, select(AppLibrary).order_by(AppLibrary.id), page, per_page)


async def list_purchases(db: AsyncSession, page: int, per_page: int) -> tuple[list[PurchaseHistory], int]:
    stmt = select(PurchaseHistory).order_by(PurchaseHistory.purchase_date.desc(), PurchaseHistory.id.desc())
    return await paginate(db, stmt, page, per_page)


async def list_notifications(db: AsyncSession, page: int, per_page: int) -> tuple[list[Notification], int]:
    stmt = select(Notification).order_by(Notification.created_at.desc(), Notification.id.desc())
    return await paginate(db, stmt, page, per_page)


async def list_audit_log(
    db: AsyncSession,
    page: int,
    per_page: int,
    table_name: str | None = None,
) -> tuple[list[AuditLog], int]:
    stmt = select(AuditLog).order_by(AuditLog.id.desc())
    if table_name:
        stmt = stmt.where(AuditLog.table_name == table_name)
    return await paginate(db, stmt, page, per_page)
