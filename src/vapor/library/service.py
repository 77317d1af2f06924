"""
Wallet checkout, free claims, library and purchase history.

A purchase runs in the caller's transaction: wallet debit, library inserts,
ledger rows and cart clear are committed together or not at all.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from vapor.cart.service import DLC_BASE_REQUIRED, base_available, cart_app_ids, get_cart
from vapor.catalog.service import get_app, owned_app_ids
from vapor.db.models import (
    APP_TYPE_DEMO,
    App,
    AppLibrary,
    CartItem,
    PurchaseHistory,
    User,
    Wishlist,
)
from vapor.errors import ConflictError, NotFoundError, ValidationFailed
from vapor.wishlist.service import renumber_wishlist

logger = structlog.get_logger()

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# points redeemed -> percent off
DISCOUNT_TIERS: dict[int, int] = {500: 50, 250: 25, 100: 10}

PAYMENT_WALLET = "Wallet"
PAYMENT_FREE = "Free"
PAYMENT_STRIPE_TOP_UP = "Stripe Wallet Top-Up"
TOP_UP_LABEL = "Wallet Top-Up"


@dataclass
class PurchasedItem:
    app_id: int
    app_name: str
    price: Decimal


@dataclass
class PurchaseResult:
    items: list[PurchasedItem] = field(default_factory=list)
    subtotal: Decimal = ZERO
    total: Decimal = ZERO
    points_used: int = 0
    points_awarded: int = 0
    wallet_after: Decimal = ZERO


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def discount_percent(points_to_use: int) -> int:
    """
    Percent off for a points redemption. Zero points means no discount.

    Raises:
        ValidationFailed: Points given that match no tier.
    """
    if points_to_use == 0:
        return 0
    if points_to_use not in DISCOUNT_TIERS:
        msg = "Invalid discount attempt."
        raise ValidationFailed(msg)
    return DISCOUNT_TIERS[points_to_use]


def price_items(prices: list[Decimal], percent: int) -> tuple[list[Decimal], Decimal]:
    """
    Apply a percentage discount to a list of prices.

    Returns the per-item prices and the rounded total. Rounding drift is
    absorbed by the last item so the items always sum to the total.
    """
    subtotal = sum(prices, ZERO)
    factor = (Decimal(100) - percent) / Decimal(100)
    total = _money(subtotal * factor)
    items = [_money(p * factor) for p in prices]
    if items:
        items[-1] += total - sum(items, ZERO)
    return items, total


# ---------------------------------------------------------------------------
# Wallet purchase
# ---------------------------------------------------------------------------


async def purchase_cart(db: AsyncSession, user: User, points_to_use: int = 0) -> PurchaseResult:
    """
    Buy everything in the cart with the wallet.

    Raises:
        ValidationFailed: Not enough points, empty cart, DLC without its base,
            invalid discount or insufficient balance.
    """
    if points_to_use < 0 or points_to_use > user.points:
        msg = "Not enough points."
        raise ValidationFailed(msg)

    cart = await get_cart(db, user.id)
    if not cart:
        msg = "Cart is empty."
        raise ValidationFailed(msg)

    owned = await owned_app_ids(db, user.id)
    in_cart = {item.app_id for item in cart}
    for item in cart:
        if not base_available(item.app, owned, in_cart):
            raise ValidationFailed(DLC_BASE_REQUIRED)

    percent = discount_percent(points_to_use)
    subtotal = sum((item.app.price or ZERO for item in cart), ZERO)
    item_prices, total = price_items([item.app.price or ZERO for item in cart], percent)

    wallet = Decimal(user.wallet)
    if wallet < total:
        msg = "Insufficient wallet balance."
        raise ValidationFailed(msg)

    result = PurchaseResult(subtotal=subtotal, total=total)
    if percent:
        user.points -= points_to_use
        result.points_used = points_to_use
    else:
        result.points_awarded = int(total.to_integral_value(rounding=ROUND_FLOOR))
        user.points += result.points_awarded

    balance = wallet
    for item, price in zip(cart, item_prices):
        app = item.app
        if app.id not in owned:
            db.add(AppLibrary(user_id=user.id, app_id=app.id))
            owned.add(app.id)
        app.purchase_count += 1
        balance -= price
        db.add(PurchaseHistory(
            user_id=user.id,
            app_id=app.id,
            price_at_purchase=price,
            payment_method=PAYMENT_WALLET,
            wallet_change=-price,
            wallet_balance_after=balance,
        ))
        result.items.append(PurchasedItem(app_id=app.id, app_name=app.app_name, price=price))

    user.wallet = wallet - total
    result.wallet_after = user.wallet

    await db.execute(
        delete(Wishlist).where(Wishlist.user_id == user.id, Wishlist.app_id.in_(in_cart))
    )
    await db.execute(delete(CartItem).where(CartItem.user_id == user.id))
    await db.flush()
    await renumber_wishlist(db, user.id)

    logger.info(
        "wallet_purchase",
        user_id=user.id,
        items=len(result.items),
        total=str(total),
        points_used=result.points_used,
        points_awarded=result.points_awarded,
    )
    return result


async def claim_free_app(db: AsyncSession, user: User, app_id: int) -> App:
    """
    Add a free app to the library.

    Raises:
        NotFoundError: Unknown app.
        ValidationFailed: The app is not free, or is DLC without its base.
        ConflictError: Already owned.
    """
    app = await get_app(db, app_id)
    if not app.is_free:
        msg = "This app is not free."
        raise ValidationFailed(msg)
    owned = await owned_app_ids(db, user.id)
    if app_id in owned:
        msg = "You already own this app."
        raise ConflictError(msg)
    if not base_available(app, owned, await cart_app_ids(db, user.id)):
        raise ValidationFailed(DLC_BASE_REQUIRED)

    db.add(AppLibrary(user_id=user.id, app_id=app_id))
    app.purchase_count += 1
    db.add(PurchaseHistory(
        user_id=user.id,
        app_id=app_id,
        price_at_purchase=ZERO,
        payment_method=PAYMENT_FREE,
        wallet_change=None,
        wallet_balance_after=None,
    ))
    await db.execute(delete(Wishlist).where(Wishlist.user_id == user.id, Wishlist.app_id == app_id))
    await db.execute(delete(CartItem).where(CartItem.user_id == user.id, CartItem.app_id == app_id))
    await db.flush()
    await renumber_wishlist(db, user.id)
    logger.info("free_app_claimed", user_id=user.id, app_id=app_id)
    return app


# ---------------------------------------------------------------------------
# Library
# ---------------------------------------------------------------------------


@dataclass
class LibraryEntry:
    app: App
    related: list[tuple[App, bool]]


async def get_library(db: AsyncSession, user_id: int) -> list[LibraryEntry]:
    """
    Owned base apps, each with its related apps and whether those are owned.

    Demos are not listed as related apps. An owned DLC whose base game is not
    owned is listed on its own.
    """
    owned = await owned_app_ids(db, user_id)
    if not owned:
        return []
    result = await db.execute(
        select(App).options(selectinload(App.app_type)).where(App.id.in_(owned)).order_by(App.app_name)
    )
    owned_apps = list(result.scalars().all())
    roots = [a for a in owned_apps if a.base_app_id is None or a.base_app_id not in owned]
    root_ids = [a.id for a in roots]

    related_result = await db.execute(
        select(App)
        .options(selectinload(App.app_type))
        .where(App.base_app_id.in_(root_ids), App.app_type_id != APP_TYPE_DEMO)
        .order_by(App.app_name)
    )
    related_by_base: dict[int, list[tuple[App, bool]]] = {}
    for app in related_result.scalars().all():
        related_by_base.setdefault(app.base_app_id, []).append((app, app.id in owned))

    return [LibraryEntry(app=a, related=related_by_base.get(a.id, [])) for a in roots]


async def get_purchase_history(db: AsyncSession, user_id: int) -> list[PurchaseHistory]:
    """Ledger rows, newest first."""
    result = await db.execute(
        select(PurchaseHistory)
        .options(selectinload(PurchaseHistory.app))
        .where(PurchaseHistory.user_id == user_id)
        .order_by(PurchaseHistory.purchase_date.desc(), PurchaseHistory.id.desc())
    )
    return list(result.scalars().all())


def history_app_name(row: PurchaseHistory) -> str:
    return row.app.app_name if row.app is not None else TOP_UP_LABEL


async def get_user_or_404(db: AsyncSession, username: str) -> User:
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user is None:
        msg = "User not found."
        raise NotFoundError(msg)
    return user
