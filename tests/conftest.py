"""
Pytest Configuration and Fixtures

Provides fixtures for:
- Database sessions (async, in-memory SQLite)
- A file-backed SQLite engine with BEGIN IMMEDIATE for concurrency tests
- HTTP test client
- Test data factories (users, providers, wallets, jobs)
"""
# הגדרות סביבה לפני ייבוא האפליקציה: Settings נטען בזמן import
import os
os.environ.setdefault("ADMIN_API_KEY", "test-admin-api-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import itertools
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from serviceconnect.db.database import Base, get_db
from serviceconnect.db.models.job import Job, JobStatus
from serviceconnect.db.models.provider_profile import ProviderProfile, ProviderStatus
from serviceconnect.db.models.transaction import Transaction, TransactionType
from serviceconnect.db.models.user import User, UserType
from serviceconnect.db.models.wallet import Wallet
from serviceconnect.main import app


# Test database URL (SQLite in memory for fast tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_HEADERS = {"X-Admin-API-Key": os.environ["ADMIN_API_KEY"]}


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests"""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
async def file_session_maker(tmp_path):
    """
    Session factory over a file-backed SQLite database.

    כל טרנזקציה נפתחת ב-BEGIN IMMEDIATE: SQLite מסדר כותבים מקבילים
    כמו נעילת שורה ב-PostgreSQL, כך שאפשר לבדוק מרוצים אמיתיים.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 30},
        echo=False
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture(scope="function")
async def test_client(db_session: AsyncSession):
    """Create test client with database override"""
    from httpx import AsyncClient, ASGITransport

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return dict(ADMIN_HEADERS)


# ============================================================================
# Test Data Factories
# ============================================================================

@pytest.fixture
def phone_numbers():
    """Unique valid Indian mobile numbers (+919XXXXXXXXX)"""
    counter = itertools.count(1)
    return lambda: f"+919{next(counter):09d}"


async def create_user(
    session: AsyncSession,
    phone_number: str,
    user_type: UserType = UserType.CUSTOMER,
    name: Optional[str] = "Test User",
    is_blocked: bool = False,
) -> User:
    user = User(
        phone_number=phone_number,
        name=name,
        user_type=user_type,
        is_verified=True,
        is_blocked=is_blocked
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def create_provider(
    session: AsyncSession,
    phone_number: str,
    status: ProviderStatus = ProviderStatus.APPROVED,
    balance: Optional[Decimal] = None,
    categories: Optional[list[str]] = None,
    name: str = "Test Provider",
    is_blocked: bool = False,
) -> User:
    """
    Provider user with profile. When balance is given a wallet is funded
    through a RECHARGE transaction so the ledger matches the balance.
    """
    user = await create_user(session, phone_number, UserType.PROVIDER, name, is_blocked)
    session.add(ProviderProfile(
        user_id=user.id,
        business_name=f"{name} Services",
        service_categories=categories or ["plumbing"],
        status=status
    ))
    await session.commit()
    if balance is not None:
        await fund_wallet(session, user.id, balance)
    return user


async def fund_wallet(session: AsyncSession, provider_id: int, balance: Decimal) -> Wallet:
    balance = Decimal(str(balance))
    wallet = Wallet(provider_id=provider_id, balance=balance)
    session.add(wallet)
    await session.flush()
    if balance > 0:
        session.add(Transaction(
            wallet_id=wallet.id,
            type=TransactionType.RECHARGE,
            amount=balance,
            description="Opening balance"
        ))
    await session.commit()
    await session.refresh(wallet)
    return wallet


async def create_job(
    session: AsyncSession,
    customer_id: int,
    category: str = "plumbing",
    max_unlocks: int = 3,
    unlock_count: int = 0,
    status: JobStatus = JobStatus.OPEN,
) -> Job:
    job = Job(
        customer_id=customer_id,
        category=category,
        title="Leaking kitchen tap",
        description="Kitchen tap has been dripping for two days",
        location="Koramangala, Bengaluru",
        status=status,
        unlock_count=unlock_count,
        max_unlocks=max_unlocks
    )
    session.add(job)
    await session.commit()
    await session.refresh(job)
    return job


@pytest.fixture
def user_factory(db_session: AsyncSession, phone_numbers):
    """Factory for creating test users"""
    async def _create_user(
        user_type: UserType = UserType.CUSTOMER,
        name: Optional[str] = "Test User",
        phone_number: Optional[str] = None,
        is_blocked: bool = False,
    ) -> User:
        return await create_user(
            db_session, phone_number or phone_numbers(), user_type, name, is_blocked
        )

    return _create_user


@pytest.fixture
def provider_factory(db_session: AsyncSession, phone_numbers):
    """Factory for creating providers with a profile and optional funded wallet"""
    async def _create_provider(
        status: ProviderStatus = ProviderStatus.APPROVED,
        balance: Optional[Decimal] = None,
        categories: Optional[list[str]] = None,
        name: str = "Test Provider",
        is_blocked: bool = False,
    ) -> User:
        return await create_provider(
            db_session, phone_numbers(), status, balance, categories, name, is_blocked
        )

    return _create_provider


@pytest.fixture
def wallet_factory(db_session: AsyncSession):
    """Factory for creating a funded wallet for an existing provider"""
    async def _create_wallet(provider_id: int, balance: Decimal = Decimal("0.00")) -> Wallet:
        return await fund_wallet(db_session, provider_id, balance)

    return _create_wallet


@pytest.fixture
def job_factory(db_session: AsyncSession, phone_numbers):
    """Factory for creating jobs (creates the customer when not given)"""
    async def _create_job(
        customer_id: Optional[int] = None,
        category: str = "plumbing",
        max_unlocks: int = 3,
        unlock_count: int = 0,
        status: JobStatus = JobStatus.OPEN,
    ) -> Job:
        if customer_id is None:
            customer = await create_user(db_session, phone_numbers(), UserType.CUSTOMER, "Test Customer")
            customer_id = customer.id
        return await create_job(db_session, customer_id, category, max_unlocks, unlock_count, status)

    return _create_job
