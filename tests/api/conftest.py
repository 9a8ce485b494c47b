import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from campaign_manager import database
from campaign_manager.config import settings
from campaign_manager.database import Base, get_db
from campaign_manager.main import app, get_asset_storage
from campaign_manager.storage import AssetStorage


@pytest.fixture
def app_client(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    monkeypatch.setattr(database, "SessionLocal", TestingSessionLocal)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    storage = AssetStorage(root_dir=str(tmp_path / "uploads"), base_url="/uploads")
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_asset_storage] = lambda: storage

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
    engine.dispose()


@pytest.fixture
def register(app_client):
    def _register(email: str = "ada@example.com", password: str = "s3cret-pass", name: str = "Ada"):
        response = app_client.post(
            "/api/auth/register", json={"email": email, "password": password, "name": name}
        )
        assert response.status_code == 201, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _register


@pytest.fixture
def auth_headers(register):
    return register()
