"""
Test configuration and fixtures for the escrow backend tests.
"""
import pytest
from typing import AsyncGenerator
from decimal import Decimal
from unittest.mock import AsyncMock

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

from app.core.database import Base, get_db, get_redis
from app.core.security import create_access_token, get_password_hash
from main import app


# ============================================================
# Database Fixtures
# ============================================================

# Use SQLite for testing (in-memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Create a fresh test database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for each test"""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def redis_mock():
    """Redis stand-in: no token is blacklisted unless a test says so"""
    redis = AsyncMock()
    redis.get.return_value = None
    return redis


@pytest.fixture
async def client(db_session, redis_mock) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database and redis overrides"""

    async def override_get_db():
        yield db_session

    async def override_get_redis():
        return redis_mock

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================
# User Fixtures
# ============================================================

async def _create_user(db_session, phone_number, password, role):
    from app.modules.users.models import User

    user = User(
        phone_number=phone_number,
        hashed_password=get_password_hash(password),
        role=role
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def test_user(db_session):
    """Create a regular buyer account"""
    from app.modules.users.models import UserRole

    return await _create_user(db_session, "+233201234567", "BuyerPass1", UserRole.USER)


@pytest.fixture
async def admin_user(db_session):
    """Create an administrator account"""
    from app.modules.users.models import UserRole

    return await _create_user(db_session, "+233209999999", "AdminPass1", UserRole.ADMIN)


@pytest.fixture
def auth_headers(test_user):
    """Generate auth headers for the buyer"""
    token = create_access_token(data={"sub": str(test_user.id), "role": "user"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user):
    """Generate auth headers for the administrator"""
    token = create_access_token(data={"sub": str(admin_user.id), "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


# ============================================================
# Transaction Fixtures
# ============================================================

@pytest.fixture
async def test_transaction(db_session, test_user):
    """Create a pending_payment transaction for the buyer"""
    from app.modules.transactions.services import TransactionService
    from app.modules.transactions.schemas import TransactionCreate

    service = TransactionService(db_session)
    return await service.create_transaction(
        TransactionCreate(
            buyer_id=str(test_user.id),
            seller_phone="+233241112222",
            amount=Decimal("1000.00"),
            description="widget"
        )
    )


@pytest.fixture
async def paid_transaction(db_session, test_transaction):
    """A transaction with one submitted (unverified) payment"""
    from app.modules.transactions.services import TransactionService
    from app.modules.transactions.schemas import PaymentSubmitRequest

    service = TransactionService(db_session)
    await service.submit_payment(
        PaymentSubmitRequest(
            transaction_id=test_transaction.transaction_id,
            momo_reference="MOMO-REF-001"
        )
    )
    return test_transaction
