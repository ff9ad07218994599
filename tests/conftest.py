import os

os.environ["ENV"] = "test"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from packtrack.core.app_state import state as app_state  # noqa: E402
from packtrack.db import Base, get_db  # noqa: E402
import packtrack.models  # noqa: E402,F401

pytest_plugins = [
    "tests.fixtures.content_item_fixtures",
]

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    from packtrack.main import create_app

    app = create_app(testing=True)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app_state.registry.clear()
    with TestClient(app) as test_client:
        yield test_client
    app_state.registry.clear()
    app.dependency_overrides.clear()
