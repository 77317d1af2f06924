"""Shared test fixtures."""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

# Settings are read when vapor.main is imported
os.environ["VAPOR_REDIS_ENABLED"] = "false"
os.environ.setdefault("VAPOR_LOG_FORMAT", "console")
os.environ.setdefault("VAPOR_DATABASE_URL", "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "vapor_alembic.db"))

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.auth.google import set_google_verifier
from vapor.auth.jwt import create_access_token, reset_keys
from vapor.auth.password import hash_password
from vapor.config import get_settings
from vapor.database import close_db, get_engine, get_session, init_db
from vapor.db.base import Base, utcnow
from vapor.db.models import (
    APP_TYPE_DEMO,
    APP_TYPE_DLC,
    APP_TYPE_GAME,
    APP_TYPE_SOUNDTRACK,
    ROLE_ADMIN,
    ROLE_USER,
    App,
    AppImage,
    AppLibrary,
    AppType,
    Genre,
    Role,
    User,
)
from vapor.email.service import reset_email_service
from vapor.integrations.youtube import set_youtube_client
from vapor.main import create_app
from vapor.payments.stripe import set_stripe_client

PASSWORD = "SecureP@ss1"


def _ensure_test_keys() -> None:
    """Generate an RSA key pair for JWT signing if none is configured."""
    settings = get_settings()
    if os.path.exists(settings.jwt_private_key_path) and os.path.exists(settings.jwt_public_key_path):
        return

    tmpdir = tempfile.mkdtemp(prefix="vapor_test_keys_")
    private_path = os.path.join(tmpdir, "jwt_private.pem")
    public_path = os.path.join(tmpdir, "jwt_public.pem")

    os.system(f"openssl genrsa -out {private_path} 2048 2>/dev/null")  # noqa: S605
    os.system(f"openssl rsa -in {private_path} -pubout -out {public_path} 2>/dev/null")  # noqa: S605

    os.environ["VAPOR_JWT_PRIVATE_KEY_PATH"] = private_path
    os.environ["VAPOR_JWT_PUBLIC_KEY_PATH"] = public_path
    get_settings.cache_clear()
    reset_keys()


async def _seed_lookups(db: AsyncSession) -> None:
    db.add_all([Role(id=ROLE_USER, role_name="User"), Role(id=ROLE_ADMIN, role_name="Admin")])
    db.add_all([
        AppType(id=APP_TYPE_GAME, type_name="Game"),
        AppType(id=APP_TYPE_DLC, type_name="DLC"),
        AppType(id=APP_TYPE_SOUNDTRACK, type_name="Soundtrack"),
        AppType(id=APP_TYPE_DEMO, type_name="Demo"),
    ])
    await db.commit()


@pytest_asyncio.fixture
async def client(tmp_path, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against a fresh SQLite database."""
    monkeypatch.setenv("VAPOR_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'vapor.db'}")
    get_settings.cache_clear()
    _ensure_test_keys()

    app = create_app()
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async for session in get_session():
        await _seed_lookups(session)
        break

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    set_stripe_client(None)
    set_youtube_client(None)
    set_google_verifier(None)
    reset_email_service()
    await close_db()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db_session(client: AsyncClient) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session on the client's database for setup and assertions."""
    async for session in get_session():
        yield session
        break


@pytest.fixture(autouse=True)
def mock_email_service(monkeypatch):
    """Mock the email service to prevent actual email sending."""
    mock_service = MagicMock()
    mock_service.send_template = AsyncMock(return_value=True)
    mock_service.send_email = AsyncMock(return_value=True)

    for module in ("vapor.auth.router", "vapor.users.router", "vapor.library.router"):
        monkeypatch.setattr(f"{module}.get_email_service", lambda *a, **kw: mock_service)
    return mock_service


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


async def make_user(
    db: AsyncSession,
    username: str = "alice",
    *,
    admin: bool = False,
    wallet: Decimal | str = "0.00",
    points: int = 0,
    verified: bool = True,
) -> User:
    user = User(
        username=username,
        display_name=username.capitalize(),
        email=f"{username}@example.com",
        password_hash=hash_password(PASSWORD),
        role_id=ROLE_ADMIN if admin else ROLE_USER,
        wallet=Decimal(wallet),
        points=points,
        is_email_verified=verified,
        created_at=utcnow(),
    )
    db.add(user)
    await db.commit()
    return user


async def make_app(
    db: AsyncSession,
    name: str,
    price: Decimal | str | None = "9.99",
    *,
    app_type_id: int = APP_TYPE_GAME,
    base_app_id: int | None = None,
    genres: list[Genre] | None = None,
    purchase_count: int = 0,
) -> App:
    app = App(
        app_name=name,
        app_type_id=app_type_id,
        base_app_id=base_app_id,
        release_date="1 Jan, 2024",
        price=None if price is None else Decimal(price),
        description=f"{name} description",
        purchase_count=purchase_count,
    )
    app.genres = genres or []
    app.images = [AppImage(image_url=f"https://cdn.example.com/{name}.jpg", image_type="header")]
    db.add(app)
    await db.commit()
    return app


async def give_app(db: AsyncSession, user: User, app: App) -> None:
    db.add(AppLibrary(user_id=user.id, app_id=app.id))
    await db.commit()


def auth_headers(user: User) -> dict[str, str]:
    role = "Admin" if user.role_id == ROLE_ADMIN else "User"
    return {"Authorization": f"Bearer {create_access_token(user.id, user.username, role)}"}


class Factory:
    """Row builders bound to the test session."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def user(self, username: str = "alice", **kwargs) -> User:
        return await make_user(self.db, username, **kwargs)

    async def app(self, name: str, price: Decimal | str | None = "9.99", **kwargs) -> App:
        return await make_app(self.db, name, price, **kwargs)

    async def give(self, user: User, app: App) -> None:
        await give_app(self.db, user, app)

    @staticmethod
    def headers(user: User) -> dict[str, str]:
        return auth_headers(user)


@pytest_asyncio.fixture
async def factory(db_session: AsyncSession) -> Factory:
    return Factory(db_session)


@pytest_asyncio.fixture
async def user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "alice", wallet="100.00")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "bobby", wallet="50.00")


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await make_user(db_session, "admin", admin=True)


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, user: User) -> AsyncClient:
    """Client authenticated as ``user``."""
    client.headers.update(auth_headers(user))
    return client


@pytest_asyncio.fixture
async def admin_client(client: AsyncClient, admin: User) -> AsyncClient:
    client.headers.update(auth_headers(admin))
    return client


@pytest_asyncio.fixture
async def catalog(db_session: AsyncSession) -> dict[str, App]:
    """A small catalog: two games, a DLC, a soundtrack, a demo and a free game."""
    action = Genre(genre_name="Action", external_genre_id=1)
    rpg = Genre(genre_name="RPG", external_genre_id=3)
    db_session.add_all([action, rpg])
    await db_session.commit()

    hollow = await make_app(db_session, "Hollow Depths", "19.99", genres=[action, rpg], purchase_count=40)
    racer = await make_app(db_session, "Neon Racer", "9.99", genres=[action], purchase_count=10)
    free = await make_app(db_session, "Free Arena", "0.00", genres=[action], purchase_count=5)
    dlc = await make_app(db_session, "Hollow Depths: Abyss", "4.99", app_type_id=APP_TYPE_DLC, base_app_id=hollow.id)
    ost = await make_app(
        db_session, "Hollow Depths Soundtrack", "2.99", app_type_id=APP_TYPE_SOUNDTRACK, base_app_id=hollow.id
    )
    demo = await make_app(db_session, "Hollow Depths Demo", "0.00", app_type_id=APP_TYPE_DEMO, base_app_id=hollow.id)
    return {"hollow": hollow, "racer": racer, "free": free, "dlc": dlc, "ost": ost, "demo": demo}
