import base64
import json
import os
import tempfile

# settings are read at import time
os.environ["DB_URL"] = "sqlite://"
os.environ["STORAGE_BACKEND"] = "sql"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["TELEGRAM_BOT_TOKEN"] = "123456:TEST-BOT-TOKEN"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="darlingx-logs-")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("GITHUB_TOKEN", None)

import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from storage.dependencies import get_oracle_store, get_quote_store, get_user_store
from storage.github import GitHubOracleLogStore, GitHubQuoteStore, GitHubUserStore
from storage.github_document import GitHubDocumentStore
from storage.sql import SqlUserStore

PASSWORD = "Secret123"


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = json.dumps(self._payload)

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeGitHubSession:
    """
    Stands in for requests.Session against the GitHub contents API.
    Keeps one file, bumps its sha on every accepted PUT and rejects
    writes whose sha does not match the current one.
    """

    def __init__(self, document=None):
        self.document = None
        self.sha = None
        self.revision = 0
        self.gets = 0
        self.puts = 0
        self.fail_reads = False
        if document is not None:
            self._commit(document)

    def _commit(self, document):
        self.revision += 1
        self.sha = f"sha-{self.revision}"
        self.document = document

    def get(self, url, headers=None, params=None, timeout=None):
        self.gets += 1
        if self.fail_reads:
            raise requests.ConnectionError("network is down")
        if self.document is None:
            return FakeResponse(404, {"message": "Not Found"})
        encoded = base64.b64encode(json.dumps(self.document).encode("utf-8")).decode("ascii")
        return FakeResponse(200, {"content": encoded, "sha": self.sha, "encoding": "base64"})

    def put(self, url, headers=None, json=None, timeout=None):
        self.puts += 1
        sent_sha = json.get("sha")
        if self.document is not None and sent_sha is None:
            return FakeResponse(422, {"message": "sha wasn't supplied"})
        if sent_sha != self.sha:
            return FakeResponse(409, {"message": f"{url} does not match {sent_sha}"})
        self._commit(_decode(json["content"]))
        return FakeResponse(200, {"content": {"sha": self.sha}})


def _decode(content):
    return json.loads(base64.b64decode(content).decode("utf-8"))


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def fake_github():
    return FakeGitHubSession()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def make_document(clock):
    def factory(session, token="test-token", **kwargs):
        return GitHubDocumentStore(
            owner="darlingx1x",
            repo="bd",
            token=token,
            session=session,
            clock=kwargs.pop("clock", clock),
            **kwargs,
        )

    return factory


@pytest.fixture()
def document(fake_github, make_document):
    return make_document(fake_github)


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


class Harness:
    """A TestClient plus direct access to the user store behind it."""

    def __init__(self, backend, client, user_store_factory):
        self.backend = backend
        self.client = client
        self._user_store_factory = user_store_factory

    @property
    def users(self):
        return self._user_store_factory()

    def register(self, username="alice", email=None, password=PASSWORD):
        response = self.client.post(
            "/api/auth/register",
            json={"username": username, "email": email or f"{username}@example.com", "password": password},
        )
        assert response.status_code == 201, response.text
        return response.json()

    def login(self, username, password=PASSWORD):
        response = self.client.post("/api/auth/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.text
        return response.json()["token"]

    def auth(self, token):
        return {"Authorization": f"Bearer {token}"}

    def user_headers(self, username="alice"):
        return self.auth(self.register(username)["token"])

    def admin_headers(self, username="admin", role="admin"):
        user = self.register(username)["user"]
        self.users.update(user["id"], {"role": role})
        return self.auth(self.login(username))


@pytest.fixture(params=["sql", "github"])
def api(request, session_factory, make_document):
    if request.param == "sql":
        def override_get_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        user_store_factory = lambda: SqlUserStore(session_factory())
    else:
        document = make_document(FakeGitHubSession())
        app.dependency_overrides[get_quote_store] = lambda: GitHubQuoteStore(document)
        app.dependency_overrides[get_user_store] = lambda: GitHubUserStore(document)
        app.dependency_overrides[get_oracle_store] = lambda: GitHubOracleLogStore(document)
        user_store_factory = lambda: GitHubUserStore(document)

    yield Harness(request.param, TestClient(app), user_store_factory)
    app.dependency_overrides.clear()
