import os

# Keep app.db off the production database while tests import the app.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest  # noqa: E402
from dotenv import load_dotenv  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import app.models  # noqa: E402,F401
from app.db import Base  # noqa: E402
from app.schemas.projects import ProjectCreate, ProjectTaskCreate  # noqa: E402
from app.services import projects as projects_service  # noqa: E402

load_dotenv(os.path.join(os.getcwd(), ".env"))


@pytest.fixture()
def engine(tmp_path):
    # A file database so separate connections (and threads) share state and
    # every unit of work commits or rolls back for real.
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def project(db_session):
    return projects_service.projects.create(
        db_session,
        ProjectCreate(name="Payments platform", code="PROJ"),
    )


@pytest.fixture()
def uncoded_project(db_session):
    return projects_service.projects.create(
        db_session,
        ProjectCreate(name="Internal tooling"),
    )


@pytest.fixture()
def project_task(db_session, project):
    return projects_service.project_tasks.create(
        db_session,
        ProjectTaskCreate(project_id=project.id, title="Wire up checkout"),
    )


@pytest.fixture()
def client(session_factory):
    from fastapi.testclient import TestClient

    from app.db import get_db
    from app.main import app

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
