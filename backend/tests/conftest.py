"""
DigiDiploma - Test Configuration and Fixtures
"""
import os
import tempfile
from typing import AsyncGenerator
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment (before app.core.config is imported)
_tmp_dir = tempfile.mkdtemp(prefix="digidiploma-tests-")
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['JWT_SECRET'] = 'test-jwt-secret-for-testing-only'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['UPLOAD_DIR_NAME'] = os.path.join(_tmp_dir, 'uploads')
os.environ['LOG_DIR'] = os.path.join(_tmp_dir, 'logs')
os.environ['STORAGE_DRIVER'] = 'local'
for _key in ('R2_ACCESS_KEY_ID', 'R2_SECRET_ACCESS_KEY', 'R2_ACCOUNT_ID', 'R2_BUCKET_NAME',
             'RAZORPAY_KEY_ID', 'RAZORPAY_KEY_SECRET', 'RAZORPAY_WEBHOOK_SECRET',
             'SENDGRID_API_KEY', 'SMTP_USER', 'SMTP_PASS', 'FIREBASE_CREDENTIALS_PATH'):
    os.environ[_key] = ''

from app.main import app
from app.core.database import Base, get_db
from app.core.security import get_password_hash, create_user_token
from app.models.user import User, UserType
from app.services.maintenance_service import maintenance_state

fake = Faker()

# Test database setup
TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test.db'
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)

TEST_PASSWORD = 'testpassword123'


@pytest.fixture(autouse=True)
def reset_maintenance():
    """Every test starts with maintenance mode off"""
    maintenance_state.enabled = False
    yield
    maintenance_state.enabled = False


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(db: AsyncSession, user_type: UserType = UserType.STUDENT, **fields) -> User:
    """Persist a user with TEST_PASSWORD; fields override the Faker defaults"""
    values = {
        'name': fake.name(),
        'email': fake.unique.email().lower(),
        'password': get_password_hash(TEST_PASSWORD),
        'user_type': user_type,
        'branch': 'Computer Engineering',
        'semester': 3,
        'college': 'Government Polytechnic',
        'is_active': True,
    }
    values.update(fields)
    user = User(**values)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
def user_factory(db_session: AsyncSession):
    """Create extra users inside a test: await user_factory(student_id="DIP001")"""
    async def _make(user_type: UserType = UserType.STUDENT, **fields) -> User:
        return await make_user(db_session, user_type, **fields)
    return _make


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a student"""
    return await make_user(db_session)


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """Create an admin"""
    return await make_user(db_session, UserType.ADMIN, branch='', semester=None)


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Authentication headers for the student"""
    return {'Authorization': f'Bearer {create_user_token(test_user)}'}


@pytest.fixture
def admin_auth_headers(admin_user: User) -> dict:
    """Authentication headers for the admin"""
    return {'Authorization': f'Bearer {create_user_token(admin_user)}'}
