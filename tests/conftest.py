import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from sitecms.app import create_app
from sitecms.config import Settings

ADMIN_USER = "admin"
ADMIN_PASS = "correct horse"


@pytest.fixture()
def public_dir(tmp_path: Path) -> Path:
    """A tiny public tree: one public page and one admin page."""
    pub = tmp_path / "public"
    (pub / "admin").mkdir(parents=True)
    (pub / "index.html").write_text("<!doctype html><h1>Public site</h1>", encoding="utf-8")
    (pub / "admin" / "index.html").write_text("<!doctype html><h1>Admin panel</h1>", encoding="utf-8")
    return pub


@pytest.fixture()
def settings(tmp_path: Path, public_dir: Path) -> Settings:
    return Settings(
        admin_user=ADMIN_USER,
        admin_pass=ADMIN_PASS,
        session_secret="test-secret",
        data_dir=tmp_path / "data",
        public_dir=public_dir,
        max_site_bytes=4096,
        max_upload_bytes=1024,
    )


@pytest.fixture()
def app(settings: Settings):
    return create_app(settings)


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def auth_client(client: TestClient) -> TestClient:
    r = client.post("/api/login", json={"username": ADMIN_USER, "password": ADMIN_PASS})
    assert r.status_code == 200
    return client
