from pathlib import Path

import pytest

from lineblog import crypto
from lineblog.models import ROLE_ADMIN, STATUS_APPROVED, User
from lineblog.session import Session
from lineblog.store import Store


@pytest.fixture
def data_file(tmp_path: Path) -> Path:
    return tmp_path / "users.json"


@pytest.fixture
def store(data_file: Path) -> Store:
    return Store(data_file)


def add_admin(store: Store, username: str = "root", password: str = "rootpw") -> User:
    """Seed an approved admin straight into the store."""
    return store.create_user(User(
        username=username,
        password_hash=crypto.hash_password(password),
        role=ROLE_ADMIN,
        status=STATUS_APPROVED,
    ))


def logged_in(store: Store, username: str, password: str, register: bool = True) -> Session:
    """A session that has (optionally registered and) logged in."""
    s = Session(store, peer="test")
    if register:
        s.handle(f"reg {username} {password}")
    reply = s.handle(f"log {username} {password}")
    assert reply.status.value == "ok", reply.text
    return s
