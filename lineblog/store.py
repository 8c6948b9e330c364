import json
import logging
import os
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import AlreadyExists, Forbidden, InvalidState, NotFound
from .models import (
    PROFILE_FIELDS,
    ROLE_ADMIN,
    ROLE_USER,
    STATUS_APPROVED,
    STATUS_PENDING,
    Blog,
    User,
)

"""
store.py - the shared user/blog store with JSON snapshot persistence.

What this module guarantees:
- Usernames are unique; blog ids are unique and never handed out twice.
- Every public method runs under one lock, including the snapshot write, so
  check-then-write sequences (register, apply, approve, ...) are atomic even
  when many sessions hit the store at once.
- Callers only ever see copies. Mutating a returned record changes nothing
  until it is passed back through update_user().

Persistence:
- After each mutation the full state is dumped to one JSON file with two
  collections: {"users": {username: {...}}, "blogs": {id: {...}}}.
- The dump goes to a temp file in the same directory and is then renamed
  over the target, so a crash mid-write never leaves a half-written file.
- A failed write is logged and swallowed; memory stays authoritative.
"""

logger = logging.getLogger(__name__)


class Store:
    """In-memory users + blogs, snapshotted to `path` after every change."""

    def __init__(self, path: Union[str, Path, None] = None) -> None:
        self.path = Path(path) if path is not None else None
        self._lock = threading.RLock()
        self._users: Dict[str, User] = {}
        self._blogs: Dict[str, Blog] = {}
        # Set when an existing data file could not be read.
        self.load_error: Optional[str] = None
        if self.path is not None:
            self._load()

    # -----------------
    # Snapshot handling
    # -----------------

    def _load(self) -> None:
        """Load the snapshot. Missing file = empty store; bad file = logged, empty store."""
        if not self.path.exists():
            logger.info("No data file at %s, starting fresh", self.path)
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            users = {
                name: User.model_validate(rec) for name, rec in (data.get("users") or {}).items()
            }
            blogs = {
                bid: Blog.model_validate(rec) for bid, rec in (data.get("blogs") or {}).items()
            }
            for name, user in users.items():
                if name != user.username:
                    raise ValueError(f"user stored under {name!r} is named {user.username!r}")
            for bid, blog in blogs.items():
                if bid != blog.id:
                    raise ValueError(f"blog stored under {bid!r} has id {blog.id!r}")
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            # pydantic's ValidationError is a ValueError.
            # Leave the file alone; the next successful save replaces it.
            self.load_error = str(exc)
            logger.error("Could not read data file %s: %s; starting empty", self.path, exc)
            return
        self._users = users
        self._blogs = blogs
        logger.info("Loaded %d users and %d blogs from %s", len(users), len(blogs), self.path)

    def _dump(self) -> Dict[str, Any]:
        return {
            "users": {name: u.model_dump() for name, u in self._users.items()},
            "blogs": {bid: b.model_dump() for bid, b in self._blogs.items()},
        }

    def _persist(self) -> None:
        """Write the full snapshot atomically. Caller must hold the lock."""
        if self.path is None:
            return
        data = self._dump()
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp",
                delete=False, encoding="utf-8",
            ) as tf:
                tmp_name = tf.name
                json.dump(data, tf, indent=2, ensure_ascii=False)
                tf.flush()
                os.fsync(tf.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            logger.error("Failed to save data file %s: %s", self.path, exc)
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of the current state in snapshot form."""
        with self._lock:
            return self._dump()

    # ----------
    # User API
    # ----------

    def create_user(self, user: User) -> User:
        with self._lock:
            if user.username in self._users:
                raise AlreadyExists(f"User {user.username} already exists")
            self._users[user.username] = user.model_copy()
            self._persist()
            return user.model_copy()

    def find_user(self, username: str) -> User:
        with self._lock:
            user = self._users.get(username)
            if user is None:
                raise NotFound(f"User {username} not found")
            return user.model_copy()

    def update_user(self, user: User) -> User:
        # Upsert: callers normally fetched the record first.
        with self._lock:
            self._users[user.username] = user.model_copy()
            self._persist()
            return user.model_copy()

    def update_profile(self, username: str, values: Dict[str, str]) -> User:
        """Replace all profile fields of an existing user in one step."""
        with self._lock:
            user = self._users.get(username)
            if user is None:
                raise NotFound(f"User {username} not found")
            updated = user.model_copy(
                update={attr: str(values.get(attr, "")) for attr, _ in PROFILE_FIELDS}
            )
            self._users[username] = updated
            self._persist()
            return updated.model_copy()

    def delete_user(self, username: str) -> None:
        """Remove a user. Their blogs are left in place."""
        with self._lock:
            if username not in self._users:
                raise NotFound(f"User {username} not found")
            del self._users[username]
            self._persist()

    def list_users(self) -> List[User]:
        with self._lock:
            return [u.model_copy() for u in self._users.values()]

    def list_pending_admin_applicants(self) -> List[User]:
        with self._lock:
            return [u.model_copy() for u in self._users.values() if u.has_pending_application]

    def apply_admin(self, username: str) -> User:
        """Turn `username` into an admin applicant (role=admin, status=pending)."""
        with self._lock:
            user = self._users.get(username)
            if user is None:
                raise NotFound(f"User {username} not found")
            if user.has_pending_application:
                raise InvalidState("Admin application already pending")
            if user.is_admin:
                raise InvalidState("You are already an administrator")
            user.role = ROLE_ADMIN
            user.status = STATUS_PENDING
            self._persist()
            return user.model_copy()

    def approve_admin(self, username: str) -> User:
        with self._lock:
            user = self._pending(username)
            user.status = STATUS_APPROVED
            self._persist()
            return user.model_copy()

    def reject_admin(self, username: str) -> User:
        """
        Turn down a pending application.

        The account survives: the user drops back to a plain, not yet
        approved user instead of being deleted.
        """
        with self._lock:
            user = self._pending(username)
            user.role = ROLE_USER
            user.status = STATUS_PENDING
            self._persist()
            return user.model_copy()

    def _pending(self, username: str) -> User:
        user = self._users.get(username)
        if user is None:
            raise NotFound(f"User {username} not found")
        if user.status != STATUS_PENDING:
            raise InvalidState(f"User {username} is not pending approval")
        return user

    # ----------
    # Blog API
    # ----------

    def create_blog(self, author: str, title: str, text: str) -> Blog:
        """Insert a blog under a fresh id. The author is not checked here."""
        with self._lock:
            blog_id = uuid.uuid4().hex
            while blog_id in self._blogs:
                blog_id = uuid.uuid4().hex
            blog = Blog(id=blog_id, author=author, title=title, text=text)
            self._blogs[blog_id] = blog
            self._persist()
            return blog.model_copy()

    def find_blog(self, blog_id: str) -> Blog:
        with self._lock:
            blog = self._blogs.get(blog_id)
            if blog is None:
                raise NotFound("Blog not found")
            return blog.model_copy()

    def delete_blog(self, author: str, blog_id: str) -> None:
        with self._lock:
            blog = self._blogs.get(blog_id)
            if blog is None:
                raise NotFound("Blog not found")
            if blog.author != author:
                raise Forbidden("You are not the author of this blog")
            del self._blogs[blog_id]
            self._persist()

    def list_blogs_by_author(self, username: str) -> List[Blog]:
        with self._lock:
            return [b.model_copy() for b in self._blogs.values() if b.author == username]
