import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from campaign_manager.auth import hash_password
from campaign_manager.config import settings
from campaign_manager.database import Base
from campaign_manager.models import User
from campaign_manager.storage import AssetStorage

SQLALCHEMY_DATABASE_URL = "sqlite://"


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def db():
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()

    yield db

    db.close()
    engine.dispose()


@pytest.fixture
def storage(tmp_path) -> AssetStorage:
    return AssetStorage(root_dir=str(tmp_path / "uploads"), base_url="/uploads")


@pytest.fixture
def make_user(db):
    def _make_user(email: str, password: str = "password123", name: str = "Test User"):
        user = User(email=email, password_hash=hash_password(password), name=name)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def owner(make_user) -> User:
    return make_user("owner@example.com", name="Owner")


@pytest.fixture
def intruder(make_user) -> User:
    return make_user("intruder@example.com", name="Intruder")
