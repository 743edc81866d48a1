"""
Configuration partagée pour tous les tests.

- `client` : client HTTP de test, BDD mockée (les services sont patchés dans chaque test)
- `db`     : session sur une base SQLite en mémoire, pour les tests du moteur de progression
- `as_user` / `as_admin` : court-circuitent l'authentification JWT
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("SECRET_KEY", "challengequest-test-secret-key-0123456789")

from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth import get_current_user, get_optional_user, require_admin
from app.database import Base, get_db
from app.main import app
from app.models.challenge import Challenge, Stage
from app.models.level import Level
from app.models.user import User


@pytest.fixture
def client():
    """Client HTTP de test avec la BDD mockée."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _fake_user(user_id=1, is_admin=False):
    return SimpleNamespace(id=user_id, username=f"user{user_id}", is_admin=is_admin, is_active=True)


@pytest.fixture
def as_user(client):
    """Authentifie les requêtes en tant qu'utilisateur standard (id=1)."""
    user = _fake_user(1)
    app.dependency_overrides[get_optional_user] = lambda: user
    app.dependency_overrides[get_current_user] = lambda: user
    return user


@pytest.fixture
def as_admin(client):
    """Authentifie les requêtes en tant qu'administrateur (id=99)."""
    admin = _fake_user(99, is_admin=True)
    app.dependency_overrides[get_optional_user] = lambda: admin
    app.dependency_overrides[get_current_user] = lambda: admin
    app.dependency_overrides[require_admin] = lambda: admin
    return admin


# ----------------------------------------------------------------
# Base SQLite en mémoire
# ----------------------------------------------------------------

@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


NOW = datetime(2026, 6, 15, 12, 0, 0)


@pytest.fixture
def levels(db):
    """Table {1:[0,1000), 2:[1000,3000), 3:[3000,6000)}."""
    rows = [
        Level(number=1, name="Beginner", min_xp=0, max_xp=1000),
        Level(number=2, name="Explorer", min_xp=1000, max_xp=3000),
        Level(number=3, name="Adventurer", min_xp=3000, max_xp=6000),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(xp=0, created_at=None, is_active=True, is_admin=False, username=None):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=f"player{n}@example.com",
            username=username or f"player{n}",
            password_hash="x",
            xp=xp,
            level=1,
            is_active=is_active,
            is_admin=is_admin,
            created_at=created_at or NOW - timedelta(days=100 - n),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_challenge(db):
    def _make(
        stage_codes=("QR1", "QR2", "QR3"),
        xp_reward=300,
        required_level=1,
        start_date=NOW - timedelta(days=1),
        end_date=NOW + timedelta(days=7),
        is_active=True,
        max_participants=None,
    ):
        challenge = Challenge(
            title="Chasse au trésor",
            description="Parcours dans la vieille ville",
            category="Découverte",
            difficulty="MEDIUM",
            xp_reward=xp_reward,
            required_level=required_level,
            start_date=start_date,
            end_date=end_date,
            is_active=is_active,
            max_participants=max_participants,
        )
        challenge.stages = [
            Stage(
                order=index,
                title=f"Étape {index + 1}",
                qr_code=code,
                latitude=None if code else 50.85,
                longitude=None if code else 4.35,
            )
            for index, code in enumerate(stage_codes)
        ]
        db.add(challenge)
        db.commit()
        db.refresh(challenge)
        return challenge

    return _make
