from lineblog import crypto
from lineblog import messages as m
from lineblog.errors import HashingFailure
from lineblog.models import ROLE_ADMIN, ROLE_USER, STATUS_APPROVED, STATUS_PENDING
from lineblog.session import Session, State, Status

from .conftest import add_admin, logged_in


def test_register_and_duplicate(store):
    s = Session(store)
    assert s.handle("reg alice pw1").status is Status.OK
    reply = s.handle("reg alice pw2")
    assert reply.status is Status.ALREADY_EXISTS
    assert s.state is State.UNAUTHENTICATED

    user = store.find_user("alice")
    assert (user.role, user.status) == (ROLE_USER, STATUS_PENDING)
    assert crypto.verify_password("pw1", user.password_hash)


def test_registration_hashing_failure_is_generic(store, monkeypatch):
    def boom(password):
        raise HashingFailure("kdf down")

    monkeypatch.setattr(crypto, "hash_password", boom)
    reply = Session(store).handle("reg alice pw")
    assert reply.status is Status.HASHING_FAILURE
    assert reply.text == m.REGISTRATION_FAILED
    assert store.list_users() == []


def test_login_failures_are_indistinguishable(store):
    Session(store).handle("reg alice right")
    s = Session(store)
    wrong_pw = s.handle("log alice wrong")
    unknown = s.handle("log nobody wrong")
    assert wrong_pw == unknown
    assert wrong_pw.status is Status.AUTH_FAILURE
    assert s.state is State.UNAUTHENTICATED


def test_login_sets_admin_flag(store):
    s = logged_in(store, "alice", "pw")
    assert s.state is State.AUTHENTICATED
    assert s.username == "alice"
    assert not s.is_admin

    add_admin(store)
    admin = logged_in(store, "root", "rootpw", register=False)
    assert admin.is_admin


def test_usage_unknown_and_blank_lines(store):
    s = Session(store)
    reply = s.handle("reg alice")
    assert reply.status is Status.USAGE
    assert "reg <username> <password>" in reply.text
    assert s.handle("").status is Status.INVALID_FORMAT
    assert s.handle("my-blogs").status is Status.UNKNOWN_COMMAND


def test_exit_before_login(store):
    s = Session(store)
    reply = s.handle("exit")
    assert reply.closed and reply.text == m.GOODBYE
    assert s.closed
    assert s.handle("reg a b").closed


def test_exit_after_login(store):
    s = logged_in(store, "alice", "pw")
    assert s.handle("exit").closed
    assert s.state is State.TERMINATED


def test_admin_only_commands_forbidden_for_users(store):
    s = logged_in(store, "alice", "pw")
    # Wrong argument counts too: a non-admin never learns the usage form.
    for line in ("list-pending", "list-users", "delete-user bob",
                 "delete-user", "list-users extra", "list-pending x"):
        reply = s.handle(line)
        assert reply.status is Status.FORBIDDEN
        assert "Usage" not in reply.text
        assert s.state is State.AUTHENTICATED


def test_profile_edit_flow(store):
    s = logged_in(store, "alice", "pw")
    reply = s.handle("view-profile")
    assert reply.status is Status.PROMPT
    assert "(yes/no)" in reply.text
    assert s.handle("yes").text == "Name:"

    answers = ["Alice", "Smith", "Cat", "Alien", "1990", "Oslo", "Rosenborg"]
    for answer in answers[:-1]:
        assert s.handle(answer).status is Status.PROMPT
    done = s.handle(answers[-1])
    assert done.status is Status.OK
    assert s.state is State.AUTHENTICATED

    user = store.find_user("alice")
    assert [user.name, user.surname, user.favorite_animal, user.favorite_movie,
            user.year_of_birth, user.city_of_birth, user.football_team] == answers
    assert "Rosenborg" in s.handle("view-profile").text


def test_profile_edit_cancel(store):
    s = logged_in(store, "alice", "pw")
    s.handle("view-profile")
    reply = s.handle("no")
    assert reply.status is Status.CANCELLED
    assert s.state is State.AUTHENTICATED
    assert store.find_user("alice").name == ""


def test_profile_fields_may_be_blank(store):
    s = logged_in(store, "alice", "pw")
    s.handle("view-profile")
    s.handle("yes")
    for _ in range(7):
        reply = s.handle("")
    assert reply.status is Status.OK


def _post(s, title, text):
    s.handle("my-blogs")
    assert s.handle("post").text == m.BLOG_TITLE_PROMPT
    assert s.handle(title).text == m.BLOG_TEXT_PROMPT
    return s.handle(text)


def test_post_and_list_only_own_blogs(store):
    alice = logged_in(store, "alice", "pw")
    bob = logged_in(store, "bob", "pw")
    assert _post(alice, "Hello", "first post").status is Status.OK
    for i in range(3):
        _post(bob, f"bob-{i}", "text")

    listing = alice.handle("my-blogs")
    assert "1. Hello" in listing.text
    assert "bob-" not in listing.text
    alice.handle("exit")
    assert [b.title for b in store.list_blogs_by_author("alice")] == ["Hello"]


def test_post_requires_title_and_text(store):
    s = logged_in(store, "alice", "pw")
    reply = _post(s, "", "text")
    assert reply.status is Status.INVALID_INPUT
    assert s.state is State.AUTHENTICATED
    assert store.list_blogs_by_author("alice") == []


def test_delete_blog_by_number(store):
    s = logged_in(store, "alice", "pw")
    _post(s, "one", "1")
    _post(s, "two", "2")

    s.handle("my-blogs")
    assert s.handle("delete").text == m.BLOG_INDEX_PROMPT
    assert s.handle("1").status is Status.OK
    assert [b.title for b in store.list_blogs_by_author("alice")] == ["two"]


def test_delete_blog_bad_index(store):
    s = logged_in(store, "alice", "pw")
    _post(s, "one", "1")
    for bad in ("0", "2", "abc", "-1", "+1", "1_0", " 1 1", "\u0661", "\uff11"):
        s.handle("my-blogs")
        s.handle("delete")
        reply = s.handle(bad)
        assert reply.status is Status.INVALID_INPUT
        assert s.state is State.AUTHENTICATED
    assert len(store.list_blogs_by_author("alice")) == 1


def test_delete_with_no_blogs(store):
    s = logged_in(store, "alice", "pw")
    s.handle("my-blogs")
    reply = s.handle("delete")
    assert reply.status is Status.CANCELLED
    assert m.NO_BLOGS_TO_DELETE in reply.text
    assert s.state is State.AUTHENTICATED


def test_blog_dialogue_exit_and_junk(store):
    s = logged_in(store, "alice", "pw")
    s.handle("my-blogs")
    assert s.handle("exit").status is Status.CANCELLED
    assert not s.closed
    s.handle("my-blogs")
    assert s.handle("publish").status is Status.INVALID_INPUT
    assert s.state is State.AUTHENTICATED


def test_apply_admin_twice(store):
    s = logged_in(store, "alice", "pw")
    assert s.handle("apply-admin").status is Status.OK
    before = store.find_user("alice")
    reply = s.handle("apply-admin")
    assert reply.status is Status.INVALID_STATE
    assert store.find_user("alice") == before


def test_apply_approve_then_relogin_is_admin(store):
    add_admin(store)
    alice = logged_in(store, "alice", "pw")
    alice.handle("apply-admin")

    root = logged_in(store, "root", "rootpw", register=False)
    listing = root.handle("list-pending")
    assert listing.status is Status.PROMPT
    assert "- alice" in listing.text
    assert root.handle("approve").text == m.APPROVE_PROMPT
    assert root.handle("alice").status is Status.OK
    assert root.state is State.AUTHENTICATED

    user = store.find_user("alice")
    assert (user.role, user.status) == (ROLE_ADMIN, STATUS_APPROVED)
    assert not alice.is_admin  # privileges are fixed at login time
    again = logged_in(store, "alice", "pw", register=False)
    assert again.is_admin


def test_reject_keeps_account(store):
    add_admin(store)
    logged_in(store, "alice", "pw").handle("apply-admin")
    root = logged_in(store, "root", "rootpw", register=False)
    root.handle("list-pending")
    root.handle("reject")
    assert root.handle("alice").status is Status.OK
    user = store.find_user("alice")
    assert (user.role, user.status) == (ROLE_USER, STATUS_PENDING)


def test_approve_unknown_or_approved(store):
    add_admin(store)
    root = logged_in(store, "root", "rootpw", register=False)
    root.handle("list-pending")
    root.handle("approve")
    assert root.handle("ghost").status is Status.NOT_FOUND
    root.handle("list-pending")
    root.handle("approve")
    assert root.handle("root").status is Status.INVALID_STATE
    root.handle("list-pending")
    assert root.handle("exit").status is Status.CANCELLED
    assert root.state is State.AUTHENTICATED


def test_list_users_and_delete_user(store):
    add_admin(store)
    logged_in(store, "alice", "pw")
    root = logged_in(store, "root", "rootpw", register=False)
    listing = root.handle("list-users")
    assert "- alice (Role: user, Status: pending)" in listing.text
    assert "- root (Role: admin, Status: approved)" in listing.text

    assert root.handle("delete-user root").status is Status.INVALID_INPUT
    assert root.handle("delete-user alice").status is Status.OK
    assert root.handle("delete-user alice").status is Status.NOT_FOUND
    assert "alice" not in root.handle("list-users").text


def test_terminate_is_idempotent(store):
    s = Session(store)
    s.terminate()
    s.terminate()
    assert s.closed


def test_deleted_admin_loses_rights_at_once(store):
    add_admin(store, "root", "rootpw")
    add_admin(store, "deputy", "deputypw")
    root = logged_in(store, "root", "rootpw", register=False)
    deputy = logged_in(store, "deputy", "deputypw", register=False)
    assert deputy.handle("list-users").status is Status.OK

    assert root.handle("delete-user deputy").status is Status.OK
    reply = deputy.handle("list-users")
    assert reply.status is Status.FORBIDDEN
    assert reply.text == m.NO_PERMISSION
    assert not deputy.is_admin


def test_admin_removed_mid_dialogue_cannot_approve(store):
    add_admin(store, "root", "rootpw")
    add_admin(store, "deputy", "deputypw")
    alice = logged_in(store, "alice", "pw")
    alice.handle("apply-admin")
    root = logged_in(store, "root", "rootpw", register=False)
    deputy = logged_in(store, "deputy", "deputypw", register=False)

    deputy.handle("list-pending")
    assert deputy.handle("approve").status is Status.PROMPT
    root.handle("delete-user deputy")
    reply = deputy.handle("alice")
    assert reply.status is Status.FORBIDDEN
    assert deputy.state is State.AUTHENTICATED
    user = store.find_user("alice")
    assert (user.role, user.status) == (ROLE_ADMIN, STATUS_PENDING)


def test_demoted_admin_loses_rights_at_once(store):
    add_admin(store, "root", "rootpw")
    root = logged_in(store, "root", "rootpw", register=False)
    user = store.find_user("root")
    store.update_user(user.model_copy(update={"role": ROLE_USER}))
    assert root.handle("list-pending").status is Status.FORBIDDEN
