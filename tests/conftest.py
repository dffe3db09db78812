from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.projects.models import Project
from app.core import models  # noqa: F401
from app.core.config import Environment, settings
from app.core.database import Base, get_db
from app.core.security import create_access_token
from main import app

VOLUNTEER_ID = 7
OTHER_VOLUNTEER_ID = 8
OPERATOR_ID = 100
T0 = datetime(2025, 7, 1, 8, 0, 0)


@pytest.fixture(scope='session', autouse=True)
def check_test_environment():
    if settings.ENVIRONMENT != Environment.TEST:
        raise RuntimeError(
            f'Tests can only be executed in test environment. Current environment: {settings.ENVIRONMENT}'
        )


@pytest.fixture(scope='session', autouse=True)
def setup_test_secret_key():
    """Sign test tokens with a known key regardless of the local .env"""
    original_secret_key = settings.SECRET_KEY
    original_frontend_url = settings.FRONTEND_URL

    settings.SECRET_KEY = 'test_secret_key'
    settings.FRONTEND_URL = 'https://volunteer.example.org'

    yield

    settings.SECRET_KEY = original_secret_key
    settings.FRONTEND_URL = original_frontend_url


@pytest.fixture(scope='session')
def test_db_engine():
    engine = create_engine(
        settings.SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope='function')
def db_session(test_db_engine):
    """Create a fresh database session for each test"""
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=test_db_engine
    )

    Base.metadata.drop_all(bind=test_db_engine)
    Base.metadata.create_all(bind=test_db_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope='function')
def client(db_session):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def get_auth_headers_for_account(account_id: int, role: str = 'volunteer') -> dict:
    """Generate auth headers for a specific account ID"""
    access_token = create_access_token(data={'account_id': account_id, 'role': role})
    return {'Authorization': f'Bearer {access_token}'}


@pytest.fixture
def volunteer_headers():
    return get_auth_headers_for_account(VOLUNTEER_ID)


@pytest.fixture
def operator_headers():
    return get_auth_headers_for_account(OPERATOR_ID, role='organization')


@pytest.fixture(scope='function')
def create_test_project(db_session):
    """Factory fixture to create test projects"""

    def _create_project(project_id: int, name: str = None):
        project = Project(
            id=project_id,
            name=name or f'Test Project {project_id}',
            organization_name='Test Organization',
            location='Test Location',
        )
        db_session.add(project)
        db_session.commit()
        return project

    yield _create_project


@pytest.fixture(scope='function')
def test_project(create_test_project):
    """Creates the default test project with ID 42"""
    return create_test_project(42, 'Riverside Cleanup')
