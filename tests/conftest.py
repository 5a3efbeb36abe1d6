from pathlib import Path
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from nasuha_connect.core.config import Settings
from nasuha_connect.core.security import hash_password
from nasuha_connect.main import create_app
from nasuha_connect.models import AuditLog, Korda, Role, User

JWT_SECRET = "test-jwt-secret-strong-value-0123456789"
ADMIN_EMAIL = "admin@nasuha.or.id"
ADMIN_PASSWORD = "admin-pass-123"
# Low PBKDF2 cost keeps the suite fast; verification reads rounds from the hash.
TEST_HASH_ROUNDS = 1000


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = dict(
        app_env="test",
        database_url=f"sqlite+pysqlite:///{tmp_path / 'nasuha_test.db'}",
        jwt_secret=JWT_SECRET,
        auto_create_db=True,
        auto_run_migrations=False,
        auto_seed=True,
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
        rate_limit_enabled=False,
        audit_workers=1,
        enable_media_auto_archive=False,
    )
    values.update(overrides)
    return Settings(**values)


class Api:
    """Direct-store helpers and request shortcuts for API tests."""

    def __init__(self, client: TestClient) -> None:
        self.client = client
        self.app = client.app

    def session(self):
        return self.app.state.session_factory()

    def role_id(self, name: str) -> str:
        with self.session() as db:
            return db.query(Role).filter(Role.name == name).one().id

    def korda_id(self, code: str) -> str:
        with self.session() as db:
            return db.query(Korda).filter(Korda.code == code).one().id

    def create_user(
        self,
        email: str,
        password: Optional[str] = "user-pass-123",
        *,
        role: str = "member",
        korda: Optional[str] = None,
        is_active: bool = True,
    ) -> str:
        role_id = self.role_id(role)
        korda_id = self.korda_id(korda) if korda else None
        with self.session() as db:
            user = User(
                email=email,
                full_name=email.split("@")[0].title(),
                password_hash=hash_password(password, rounds=TEST_HASH_ROUNDS) if password else None,
                role_id=role_id,
                korda_id=korda_id,
                is_active=is_active,
            )
            db.add(user)
            db.commit()
            return user.id

    def login(self, email: str, password: str) -> str:
        resp = self.client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]["token"]

    def headers_for(self, email: str, password: str = "user-pass-123") -> dict:
        return {"Authorization": f"Bearer {self.login(email, password)}"}

    def admin_headers(self) -> dict:
        return self.headers_for(ADMIN_EMAIL, ADMIN_PASSWORD)

    def audit_rows(self, action: Optional[str] = None) -> list:
        assert self.app.state.audit_recorder.drain(timeout=10.0)
        with self.session() as db:
            query = db.query(AuditLog)
            if action:
                query = query.filter(AuditLog.action == action)
            return query.order_by(AuditLog.created_at.asc()).all()


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def api(client):
    return Api(client)
