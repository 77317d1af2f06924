"""Admin back-office endpoints. Every route requires the Admin role."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.admin import service
from vapor.admin.schemas import (
    AdminAppRequest,
    AdminAppResponse,
    AdminCommentResponse,
    AdminCreateUserRequest,
    AdminNotificationResponse,
    AdminOwnershipResponse,
    AdminPostResponse,
    AdminPurchaseResponse,
    AdminReviewResponse,
    AdminUpdateAppRequest,
    AdminUpdateUserRequest,
    AdminUserResponse,
    AuditLogResponse,
    LookupKind,
    LookupRequest,
    LookupResponse,
    Page,
)
from vapor.auth.dependencies import get_current_admin
from vapor.database import get_session
from vapor.db.models import App, User

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


def _user(u: User) -> AdminUserResponse:
    return AdminUserResponse(
        id=u.id,
        username=u.username,
        display_name=u.display_name,
        email=u.email,
        role=u.role_label,
        wallet=u.wallet,
        points=u.points,
        is_email_verified=u.is_email_verified,
        is_google_authenticated=u.is_google_authenticated,
        created_at=u.created_at,
    )


def _app(a: App) -> AdminAppResponse:
    return AdminAppResponse(
        id=a.id,
        app_name=a.app_name,
        app_type_id=a.app_type_id,
        base_app_id=a.base_app_id,
        release_date=a.release_date,
        price=a.price,
        description=a.description,
        purchase_count=a.purchase_count,
        genres=[g.genre_name for g in a.genres],
        developers=[d.name for d in a.developers],
        publishers=[p.name for p in a.publishers],
    )


# ── Users ──


@router.get("/users", response_model=Page[AdminUserResponse])
async def list_users(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    users, total = await service.list_users(db, page, per_page)
    return Page[AdminUserResponse](items=[_user(u) for u in users], total=total, page=page, per_page=per_page)


@router.post("/users", response_model=AdminUserResponse, status_code=201)
async def create_user(
    body: AdminCreateUserRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    user = await service.create_user(db, body.username, body.display_name, body.email, body.password, body.role)
    await db.commit()
    return _user(user)


@router.patch("/users/{user_id}", response_model=AdminUserResponse)
async def update_user(
    user_id: int,
    body: AdminUpdateUserRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    """Edit role, wallet, points or display name."""
    user = await service.update_user(db, user_id, **body.model_dump(exclude_unset=True))
    await db.commit()
    return _user(user)


@router.delete("/users/{user_id}", status_code=200)
async def delete_user(
    user_id: int,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    await service.remove_user(db, admin, user_id)
    await db.commit()
    return {"detail": "User deleted"}


# ── Apps ──


@router.get("/apps", response_model=Page[AdminAppResponse])
async def list_apps(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    apps, total = await service.list_apps(db, page, per_page)
    return Page[AdminAppResponse](items=[_app(a) for a in apps], total=total, page=page, per_page=per_page)


@router.post("/apps", response_model=AdminAppResponse, status_code=201)
async def create_app(
    body: AdminAppRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    app = await service.create_app(db, body.model_dump())
    await db.commit()
    return _app(app)


@router.patch("/apps/{app_id}", response_model=AdminAppResponse)
async def update_app(
    app_id: int,
    body: AdminUpdateAppRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    app = await service.update_app(db, app_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return _app(app)


@router.delete("/apps/{app_id}", status_code=200)
async def delete_app(
    app_id: int,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    await service.delete_app(db, app_id)
    await db.commit()
    return {"detail": "App deleted"}


# ── Lookups ──


@router.get("/lookups/{kind}", response_model=list[LookupResponse])
async def list_lookup(
    kind: LookupKind,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    return [LookupResponse(id=i, name=n) for i, n in await service.list_lookup(db, kind)]


@router.post("/lookups/{kind}", response_model=LookupResponse, status_code=201)
async def create_lookup(
    kind: LookupKind,
    body: LookupRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    item_id, name = await service.create_lookup(db, kind, body.name)
    await db.commit()
    return LookupResponse(id=item_id, name=name)


@router.patch("/lookups/{kind}/{item_id}", response_model=LookupResponse)
async def rename_lookup(
    kind: LookupKind,
    item_id: int,
    body: LookupRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    item_id, name = await service.rename_lookup(db, kind, item_id, body.name)
    await db.commit()
    return LookupResponse(id=item_id, name=name)


@router.delete("/lookups/{kind}/{item_id}", status_code=200)
async def delete_lookup(
    kind: LookupKind,
    item_id: int,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    await service.delete_lookup(db, kind, item_id)
    await db.commit()
    return {"detail": "Deleted"}


# ── Read-only listings ──


@router.get("/posts", response_model=Page[AdminPostResponse])
async def list_posts(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    posts, total = await service.list_posts(db, page, per_page)
    items = [
        AdminPostResponse(
            id=p.id,
            user_id=p.user_id,
            author=service.admin_author(p.user_id, p.user_display_name),
            app_id=p.app_id,
            content=p.content,
            created_at=p.created_at,
        )
        for p in posts
    ]
    return Page[AdminPostResponse](items=items, total=total, page=page, per_page=per_page)


@router.get("/comments", response_model=Page[AdminCommentResponse])
async def list_comments(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    comments, total = await service.list_comments(db, page, per_page)
    items = [
        AdminCommentResponse(
            id=c.id,
            post_id=c.post_id,
            user_id=c.user_id,
            author=service.admin_author(c.user_id, c.user_display_name),
            comment_text=c.comment_text,
            created_at=c.created_at,
            is_edited=c.is_edited,
        )
        for c in comments
    ]
    return Page[AdminCommentResponse](items=items, total=total, page=page, per_page=per_page)


@router.get("/reviews", response_model=Page[AdminReviewResponse])
async def list_reviews(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    reviews, total = await service.list_reviews(db, page, per_page)
    items = [
        AdminReviewResponse(
            id=r.id,
            app_id=r.app_id,
            user_id=r.user_id,
            author=service.admin_author(r.user_id, r.user_display_name),
            is_recommended=r.is_recommended,
            review_text=r.review_text,
            created_at=r.created_at,
            is_edited=r.is_edited,
        )
        for r in reviews
    ]
    return Page[AdminReviewResponse](items=items, total=total, page=page, per_page=per_page)


@router.get("/cart-items", response_model=Page[AdminOwnershipResponse])
async def list_cart_items(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    rows, total = await service.list_cart_items(db, page, per_page)
    items = [AdminOwnershipResponse(id=r.id, user_id=r.user_id, app_id=r.app_id, created_at=r.added_at) for r in rows]
    return Page[AdminOwnershipResponse](items=items, total=total, page=page, per_page=per_page)


@router.get("/wishlists", response_model=Page[AdminOwnershipResponse])
async def list_wishlists(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    rows, total = await service.list_wishlists(db, page, per_page)
    items = [
        AdminOwnershipResponse(
            id=r.id, user_id=r.user_id, app_id=r.app_id, priority=r.priority, created_at=r.created_at
        )
        for r in rows
    ]
    return Page[AdminOwnershipResponse](items=items, total=total, page=page, per_page=per_page)


@router.get("/libraries", response_model=Page[AdminOwnershipResponse])
async def list_libraries(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    rows, total = await service.list_libraries(db, page, per_page)
    items = [
        AdminOwnershipResponse(id=r.id, user_id=r.user_id, app_id=r.app_id, created_at=r.acquired_at) for r in rows
    ]
    return Page[AdminOwnershipResponse](items=items, total=total, page=page, per_page=per_page)


@router.get("/purchase-history", response_model=Page[AdminPurchaseResponse])
async def list_purchases(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    rows, total = await service.list_purchases(db, page, per_page)
    items = [AdminPurchaseResponse.model_validate(r) for r in rows]
    return Page[AdminPurchaseResponse](items=items, total=total, page=page, per_page=per_page)


@router.get("/notifications", response_model=Page[AdminNotificationResponse])
async def list_notifications(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    rows, total = await service.list_notifications(db, page, per_page)
    items = [AdminNotificationResponse.model_validate(r) for r in rows]
    return Page[AdminNotificationResponse](items=items, total=total, page=page, per_page=per_page)


@router.get("/audit-log", response_model=Page[AuditLogResponse])
async def audit_log(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    table_name: str | None = Query(None, max_length=64),
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    """Audit trail, newest first, optionally for one table."""
    rows, total = await service.list_audit_log(db, page, per_page, table_name)
    items = [AuditLogResponse.model_validate(r) for r in rows]
    return Page[AuditLogResponse](items=items, total=total, page=page, per_page=per_page)
