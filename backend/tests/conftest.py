import os
from datetime import datetime

# Keep the app's own engine off disk; every test session goes through test_engine
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from matchplan.database import get_session  # noqa: E402
from matchplan.main import app  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"
START_AT = datetime(2026, 6, 13, 9, 0)

# ============================================================================
# CRITICAL: Test Database Setup with StaticPool
# ============================================================================
# 1. Use sqlite:///:memory: with StaticPool so ALL sessions share same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models MUST be imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables are dropped after every test so ids and names never leak
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    # Import all models to ensure they're registered BEFORE create_all
    from matchplan.models.match import Match  # noqa: F401
    from matchplan.models.match_correction import MatchCorrection  # noqa: F401
    from matchplan.models.team import Team  # noqa: F401
    from matchplan.models.tournament import Tournament  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    CRITICAL: Override MUST be set BEFORE TestClient() and stay in place
    for the entire duration. This ensures the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Row builders
# ============================================================================


@pytest.fixture(name="make_tournament")
def make_tournament_fixture(session: Session):
    """Create a draft tournament with teams; groups maps label -> team names."""
    from matchplan.models.team import Team
    from matchplan.models.tournament import GroupSystem, Tournament

    def _make(teams=None, groups=None, **config):
        config.setdefault("name", "Summer Cup")
        config.setdefault("start_at", START_AT)
        if groups:
            config.setdefault("group_system", GroupSystem.groups_and_finals)
        tournament = Tournament(**config)
        session.add(tournament)
        session.commit()
        session.refresh(tournament)

        entries = [(name, None) for name in (teams or [])]
        for label, names in (groups or {}).items():
            entries.extend((name, label) for name in names)
        for position, (name, label) in enumerate(entries):
            session.add(Team(tournament_id=tournament.id, name=name, group_label=label, position=position))
        session.commit()
        return tournament

    return _make


@pytest.fixture(name="team_ids")
def team_ids_fixture(session: Session):
    """Team ids by name for a tournament."""
    from sqlmodel import select

    from matchplan.models.team import Team

    def _ids(tournament_id):
        teams = session.exec(select(Team).where(Team.tournament_id == tournament_id)).all()
        return {t.name: t.id for t in teams}

    return _ids
