"""Pytest fixtures for the biolink backend."""

from collections.abc import AsyncIterator, Iterator
from pathlib import Path

from alembic import command
from alembic.config import Config
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from api.deps import get_db
from app import create_app
from core.config import settings
from db.session import build_engine
from services.email import EmailDeliveryError, EmailMessage, set_email_sender
from services.oauth import set_discord_client

# Minimum bcrypt cost keeps the suite fast.
settings.password_hash_rounds = 4
settings.frontend_url = "http://frontend.test"


def _run_alembic_migrations(database_url: str) -> None:
    """Apply Alembic migrations to the given database URL."""
    backend_dir = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(backend_dir / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(backend_dir / "alembic"))

    original_database_url = settings.database_url
    try:
        settings.database_url = database_url
        command.upgrade(alembic_cfg, "head")
    finally:
        settings.database_url = original_database_url


class RecordingEmailSender:
    """Collects outgoing messages instead of delivering them."""

    def __init__(self) -> None:
        self.messages: list[EmailMessage] = []
        self.fail_for: set[str] = set()
        self.fail_all = False

    async def send(self, message: EmailMessage) -> None:
        if self.fail_all or message.to in self.fail_for:
            raise EmailDeliveryError(f"delivery to {message.to} refused")
        self.messages.append(message)

    def sent_to(self, address: str) -> list[EmailMessage]:
        return [message for message in self.messages if message.to == address]


@pytest.fixture(scope="session")
def test_database_url(tmp_path_factory) -> str:
    """Create and migrate a file-backed SQLite database for tests."""
    db_dir = tmp_path_factory.mktemp("sqlite")
    db_path = db_dir / "backend-test.db"
    database_url = f"sqlite+aiosqlite:///{db_path}"
    _run_alembic_migrations(database_url)
    return database_url


@pytest_asyncio.fixture()
async def test_engine(test_database_url: str) -> AsyncIterator[AsyncEngine]:
    """Create an async engine bound to the migrated SQLite test database."""
    engine = build_engine(test_database_url)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_maker(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Return a session factory bound to the test engine."""
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture()
def app(session_maker) -> Iterator[FastAPI]:
    """Create the FastAPI app with a test database dependency override."""
    application = create_app()

    async def override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_maker() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    yield application


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Return an HTTPX async client bound to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture(autouse=True)
async def clean_database(session_maker) -> AsyncIterator[None]:
    """Clear tables before each test to guarantee isolation."""
    async with session_maker() as session:
        for table in reversed(SQLModel.metadata.sorted_tables):
            await session.execute(table.delete())
        await session.commit()
    yield


@pytest_asyncio.fixture()
async def db_session(session_maker) -> AsyncIterator[AsyncSession]:
    """Provide a raw database session to tests."""
    async with session_maker() as session:
        yield session


@pytest.fixture(autouse=True)
def email_outbox() -> Iterator[RecordingEmailSender]:
    sender = RecordingEmailSender()
    set_email_sender(sender)
    yield sender
    set_email_sender(None)


@pytest.fixture(autouse=True)
def _reset_discord_client() -> Iterator[None]:
    yield
    set_discord_client(None)
