import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from . import crypto
from . import messages as m
from . import router
from .errors import (
    AlreadyExists,
    AuthFailure,
    Forbidden,
    HashingFailure,
    InvalidFormat,
    InvalidInput,
    InvalidState,
    LineBlogError,
    NotFound,
)
from .models import PROFILE_FIELDS, ROLE_USER, STATUS_PENDING, Blog, User
from .router import Phase, UnknownCommand, UsageError
from .store import Store

"""
session.py - the per-connection protocol state machine.

One Session per connection. The transport hands it one line at a time via
handle(); it answers with a Reply and moves to its next state. No socket is
involved, so every step can be driven directly from tests.

States:
- UNAUTHENTICATED: only reg / log / exit.
- AUTHENTICATED: the main menu (admin-only verbs gated on is_admin).
- PROFILE_* / BLOG_* / PENDING_*: sub-dialogues. Each reads a short, fixed
  sequence of follow-up lines and always lands back on AUTHENTICATED, whether
  it succeeded, failed or was cancelled.
- TERMINATED: after exit or a transport failure. Nothing more is accepted.

Replies carry a Status so callers never have to read the text to know what
happened (cancel vs success vs failure).
"""

logger = logging.getLogger(__name__)


class State(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    PROFILE_CONFIRM = "profile-confirm"
    PROFILE_FIELDS = "profile-fields"
    BLOG_ACTION = "blog-action"
    BLOG_TITLE = "blog-title"
    BLOG_TEXT = "blog-text"
    BLOG_DELETE_INDEX = "blog-delete-index"
    PENDING_ACTION = "pending-action"
    PENDING_TARGET = "pending-target"
    TERMINATED = "terminated"


class Status(Enum):
    OK = "ok"
    PROMPT = "prompt"
    CANCELLED = "cancelled"
    NOT_FOUND = "not-found"
    ALREADY_EXISTS = "already-exists"
    FORBIDDEN = "forbidden"
    INVALID_STATE = "invalid-state"
    INVALID_FORMAT = "invalid-format"
    INVALID_INPUT = "invalid-input"
    UNKNOWN_COMMAND = "unknown-command"
    USAGE = "usage"
    AUTH_FAILURE = "auth-failure"
    HASHING_FAILURE = "hashing-failure"


@dataclass(frozen=True)
class Reply:
    status: Status
    text: str
    closed: bool = False


# Most specific first: UnknownCommand/UsageError are InvalidFormat subclasses.
_ERROR_STATUS = (
    (UnknownCommand, Status.UNKNOWN_COMMAND),
    (UsageError, Status.USAGE),
    (InvalidFormat, Status.INVALID_FORMAT),
    (InvalidInput, Status.INVALID_INPUT),
    (NotFound, Status.NOT_FOUND),
    (AlreadyExists, Status.ALREADY_EXISTS),
    (Forbidden, Status.FORBIDDEN),
    (InvalidState, Status.INVALID_STATE),
    (AuthFailure, Status.AUTH_FAILURE),
    (HashingFailure, Status.HASHING_FAILURE),
)


def status_for(exc: LineBlogError) -> Status:
    for cls, status in _ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return Status.INVALID_STATE


def text_for(exc: LineBlogError) -> str:
    if isinstance(exc, UnknownCommand):
        return m.UNKNOWN_COMMAND
    if isinstance(exc, UsageError):
        return m.usage(exc.form)
    if isinstance(exc, InvalidFormat):
        return m.INVALID_FORMAT
    if isinstance(exc, AuthFailure):
        return m.INVALID_LOGIN
    if isinstance(exc, HashingFailure):
        return m.REGISTRATION_FAILED
    return m.error(str(exc))


class Session:
    """Protocol state for one connection."""

    def __init__(self, store: Store, peer: Optional[str] = None) -> None:
        self.store = store
        self.peer = peer or "-"
        self.state = State.UNAUTHENTICATED
        self.username: Optional[str] = None
        self.is_admin = False
        # Scratch space for the sub-dialogue in progress.
        self._profile_values: List[str] = []
        self._blogs: List[Blog] = []
        self._blog_title = ""
        self._pending_action = ""
        self._steps: Dict[State, Callable[[str], Reply]] = {
            State.UNAUTHENTICATED: self._top_level,
            State.AUTHENTICATED: self._top_level,
            State.PROFILE_CONFIRM: self._profile_confirm,
            State.PROFILE_FIELDS: self._profile_field,
            State.BLOG_ACTION: self._blog_action,
            State.BLOG_TITLE: self._blog_title_step,
            State.BLOG_TEXT: self._blog_text_step,
            State.BLOG_DELETE_INDEX: self._blog_delete_index,
            State.PENDING_ACTION: self._pending_action_step,
            State.PENDING_TARGET: self._pending_target,
        }

    # -------------------------
    # Entry points for the transport
    # -------------------------

    @property
    def closed(self) -> bool:
        return self.state is State.TERMINATED

    @property
    def in_dialogue(self) -> bool:
        return self.state not in (State.UNAUTHENTICATED, State.AUTHENTICATED, State.TERMINATED)

    def greeting(self) -> Reply:
        return Reply(Status.OK, m.WELCOME)

    def handle(self, line: str) -> Reply:
        """Feed one received line (without its newline) and get the answer."""
        if self.closed:
            return Reply(Status.INVALID_STATE, m.GOODBYE, closed=True)
        step = self._steps[self.state]
        try:
            return step(line.strip())
        except LineBlogError as exc:
            if self.in_dialogue:
                return self._to_menu(status_for(exc), text_for(exc))
            return Reply(status_for(exc), text_for(exc))

    def terminate(self) -> None:
        """Transport gave up (disconnect, timeout). Idempotent."""
        if not self.closed:
            logger.debug("Session %s for %s terminated", self.peer, self.username or "anonymous")
        self.state = State.TERMINATED

    # -------------------------
    # Helpers
    # -------------------------

    def _reset_dialogue(self) -> None:
        self._profile_values = []
        self._blogs = []
        self._blog_title = ""
        self._pending_action = ""

    def _to_menu(self, status: Status, text: str) -> Reply:
        """Finish a sub-dialogue, whatever its outcome."""
        self._reset_dialogue()
        self.state = State.AUTHENTICATED
        return Reply(status, m.join(text, m.BACK_TO_MENU))

    def _still_admin(self) -> bool:
        """
        Re-check admin rights against the store. An admin deleted by another
        admin loses them immediately rather than at logout.
        """
        if not self.is_admin:
            return False
        try:
            self.is_admin = self.store.find_user(self.username).is_admin
        except NotFound:
            self.is_admin = False
        return self.is_admin

    def _prompt(self, state: State, text: str) -> Reply:
        self.state = state
        return Reply(Status.PROMPT, text)

    # -------------------------
    # Top-level commands
    # -------------------------

    def _top_level(self, line: str) -> Reply:
        phase = Phase.AUTHENTICATED if self.state is State.AUTHENTICATED else Phase.UNAUTHENTICATED
        spec, args = router.lookup(phase, line)
        # Permission before usage: non-admins never see admin usage forms.
        if spec.admin_only and not self._still_admin():
            logger.info("%s (%s) tried admin command %s", self.username, self.peer, spec.verb)
            return Reply(Status.FORBIDDEN, m.NO_PERMISSION)
        cmd = router.bind(spec, args)
        handler: Callable[..., Reply] = getattr(self, "_cmd_" + cmd.verb.replace("-", "_"))
        return handler(*cmd.args)

    def _cmd_exit(self) -> Reply:
        self.state = State.TERMINATED
        return Reply(Status.OK, m.GOODBYE, closed=True)

    def _cmd_reg(self, username: str, password: str) -> Reply:
        try:
            password_hash = crypto.hash_password(password)
        except HashingFailure as exc:
            logger.error("Registration of %s failed: %s", username, exc)
            raise
        self.store.create_user(
            User(username=username, password_hash=password_hash, role=ROLE_USER, status=STATUS_PENDING)
        )
        logger.info("Registered user %s from %s", username, self.peer)
        return Reply(Status.OK, m.REGISTERED)

    def _cmd_log(self, username: str, password: str) -> Reply:
        try:
            user = self.store.find_user(username)
        except NotFound:
            # Burn the same KDF work as a real check so timing gives nothing away.
            crypto.verify_password(password, crypto.dummy_hash())
            logger.info("Failed login for %s from %s", username, self.peer)
            raise AuthFailure("invalid credentials")
        if not crypto.verify_password(password, user.password_hash):
            logger.info("Failed login for %s from %s", username, self.peer)
            raise AuthFailure("invalid credentials")

        self.username = user.username
        self.is_admin = user.is_admin
        self.state = State.AUTHENTICATED
        logger.info("%s logged in from %s (admin=%s)", username, self.peer, self.is_admin)
        return Reply(Status.OK, m.join(m.welcome_back(username, self.is_admin), m.menu(self.is_admin)))

    def _cmd_view_profile(self) -> Reply:
        user = self.store.find_user(self.username)
        return self._prompt(State.PROFILE_CONFIRM, m.join(m.profile(user), m.EDIT_PROFILE_PROMPT))

    def _cmd_my_blogs(self) -> Reply:
        # Keep the exact list shown; delete-by-number resolves against it.
        self._blogs = self.store.list_blogs_by_author(self.username)
        return self._prompt(State.BLOG_ACTION, m.join(m.blog_list(self._blogs), m.BLOG_ACTION_PROMPT))

    def _cmd_apply_admin(self) -> Reply:
        self.store.apply_admin(self.username)
        logger.info("%s applied for admin", self.username)
        return Reply(Status.OK, m.ADMIN_APPLIED)

    def _cmd_list_pending(self) -> Reply:
        applicants = sorted(self.store.list_pending_admin_applicants(), key=lambda u: u.username)
        return self._prompt(State.PENDING_ACTION, m.join(m.pending_list(applicants), m.PENDING_ACTION_PROMPT))

    def _cmd_list_users(self) -> Reply:
        users = sorted(self.store.list_users(), key=lambda u: u.username)
        return Reply(Status.OK, m.user_list(users))

    def _cmd_delete_user(self, username: str) -> Reply:
        if username == self.username:
            raise InvalidInput(m.CANNOT_DELETE_SELF)
        self.store.delete_user(username)
        logger.info("Admin %s deleted user %s", self.username, username)
        return Reply(Status.OK, m.USER_DELETED)

    # -------------------------
    # Profile edit dialogue
    # -------------------------

    def _profile_confirm(self, line: str) -> Reply:
        if line != "yes":
            return self._to_menu(Status.CANCELLED, m.PROFILE_EDIT_CANCELED)
        self._profile_values = []
        return self._prompt(State.PROFILE_FIELDS, m.field_prompt(0))

    def _profile_field(self, line: str) -> Reply:
        self._profile_values.append(line)
        if len(self._profile_values) < len(PROFILE_FIELDS):
            return self._prompt(State.PROFILE_FIELDS, m.field_prompt(len(self._profile_values)))
        values: Dict[str, Any] = {
            attr: value for (attr, _label), value in zip(PROFILE_FIELDS, self._profile_values)
        }
        self.store.update_profile(self.username, values)
        return self._to_menu(Status.OK, m.PROFILE_UPDATED)

    # -------------------------
    # Blog dialogue
    # -------------------------

    def _blog_action(self, line: str) -> Reply:
        if line == "post":
            return self._prompt(State.BLOG_TITLE, m.BLOG_TITLE_PROMPT)
        if line == "delete":
            if not self._blogs:
                return self._to_menu(Status.CANCELLED, m.NO_BLOGS_TO_DELETE)
            return self._prompt(State.BLOG_DELETE_INDEX, m.BLOG_INDEX_PROMPT)
        if line == "exit":
            return self._to_menu(Status.CANCELLED, "")
        return self._to_menu(Status.INVALID_INPUT, m.INVALID_OPTION)

    def _blog_title_step(self, line: str) -> Reply:
        self._blog_title = line
        return self._prompt(State.BLOG_TEXT, m.BLOG_TEXT_PROMPT)

    def _blog_text_step(self, line: str) -> Reply:
        title, text = self._blog_title, line
        if not title or not text:
            raise InvalidInput(m.BLOG_MISSING_FIELDS)
        # The store does not check authors, so make sure we still exist.
        self.store.find_user(self.username)
        blog = self.store.create_blog(self.username, title, text)
        logger.info("%s posted blog %s", self.username, blog.id)
        return self._to_menu(Status.OK, m.BLOG_POSTED)

    def _blog_delete_index(self, line: str) -> Reply:
        # Plain ASCII digits only; int() would also take "1_0", "+1" or other scripts.
        if not (line.isascii() and line.isdigit()):
            raise InvalidInput(m.INVALID_BLOG_NUMBER)
        index = int(line)
        if index < 1 or index > len(self._blogs):
            raise InvalidInput(m.INVALID_BLOG_NUMBER)
        blog_id = self._blogs[index - 1].id
        self.store.delete_blog(self.username, blog_id)
        logger.info("%s deleted blog %s", self.username, blog_id)
        return self._to_menu(Status.OK, m.BLOG_DELETED)

    # -------------------------
    # Pending approvals dialogue (admin)
    # -------------------------

    def _pending_action_step(self, line: str) -> Reply:
        if line == "approve":
            self._pending_action = line
            return self._prompt(State.PENDING_TARGET, m.APPROVE_PROMPT)
        if line == "reject":
            self._pending_action = line
            return self._prompt(State.PENDING_TARGET, m.REJECT_PROMPT)
        if line == "exit":
            return self._to_menu(Status.CANCELLED, m.PENDING_EXIT)
        return self._to_menu(Status.INVALID_INPUT, m.INVALID_OPTION)

    def _pending_target(self, line: str) -> Reply:
        if not self._still_admin():
            raise Forbidden(m.NO_PERMISSION)
        if self._pending_action == "approve":
            self.store.approve_admin(line)
            logger.info("Admin %s approved %s", self.username, line)
            return self._to_menu(Status.OK, m.approved(line))
        self.store.reject_admin(line)
        logger.info("Admin %s rejected %s", self.username, line)
        return self._to_menu(Status.OK, m.rejected(line))
