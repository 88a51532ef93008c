from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, delete

from app.api.deps import get_db
from app.main import app
from app.models import Application, ApplicationIdSequence, TimelineEvent

# One shared in-memory database for the whole run.
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def get_test_db() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture(scope="session", autouse=True)
def database() -> Generator[None, None, None]:
    SQLModel.metadata.create_all(engine)
    yield
    with Session(engine) as session:
        session.execute(delete(TimelineEvent))
        session.execute(delete(Application))
        session.execute(delete(ApplicationIdSequence))
        session.commit()


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture(scope="module")
def client() -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_db] = get_test_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
