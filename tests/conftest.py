"""Shared fixtures: a site in a temp directory and clients for it."""

import pytest
from fastapi.testclient import TestClient

from postdesk.core.auth import AuthManager
from postdesk.core.config import AppConfig
from postdesk.core.models import Role, User
from postdesk.core.posts import PostRepository
from postdesk.core.storage import Storage
from postdesk.main import create_app


PASSWORD = "correct horse battery"


def seed_site(config: AppConfig) -> Storage:
    """Create a database with two authors and one post each."""
    config.ensure_directories()
    storage = Storage(config.db_path)
    storage.initialize()

    auth = AuthManager(bcrypt_rounds=4)
    for username, role in (("alice", Role.ADMIN), ("bob", Role.AUTHOR)):
        user = User(username=username, password_hash=auth.hash_password(PASSWORD), role=role)
        storage.set_item("users", username, user.model_dump(mode="json"))

    posts = PostRepository(storage)
    posts.create_post(
        owner="alice", title="Hello World", markdown="# Hi\n\nFirst post.", slug="hello-world"
    )
    posts.create_post(owner="bob", title="Notes from Bob", markdown="by bob", slug="bob-notes")
    return storage


def login(client: TestClient, username: str = "alice", password: str = PASSWORD, **extra):
    """Fetch the login form for its CSRF cookie, then submit it."""
    client.get("/login")
    data = {
        "username": username,
        "password": password,
        "csrf_token": client.cookies.get("csrf_token"),
        "redirect_to": "/posts/admin",
    }
    data.update(extra)
    return client.post("/login", data=data, follow_redirects=False)


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(base_dir=tmp_path, action_delay_ms=0, bcrypt_rounds=4)


@pytest.fixture
def storage(app_config):
    return seed_site(app_config)


@pytest.fixture
def app(app_config, storage):
    return create_app(app_config)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_client(client):
    """Client logged in as alice."""
    response = login(client)
    assert response.status_code == 303
    return client
