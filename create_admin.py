import argparse
import getpass
from typing import List, Optional

from lineblog import crypto
from lineblog.errors import NotFound
from lineblog.logger import setup_logging
from lineblog.models import ROLE_ADMIN, STATUS_APPROVED, User
from lineblog.store import Store

# One-off bootstrap for the very first administrator.
# - The protocol itself can only produce *pending* admin applicants, and only
#   an approved admin can approve them, so someone has to start the chain.
# - Run this against the data file while the server is stopped; the server
#   only reads the file at startup.


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create or promote an approved admin account.")
    p.add_argument("username")
    p.add_argument("--data-file", default="users.json")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging("INFO")

    # 1) Open the same snapshot the server uses. An unreadable file is left
    #    alone: saving now would replace every account in it.
    store = Store(args.data_file)
    if store.load_error is not None:
        raise SystemExit(f"Refusing to modify {args.data_file}: {store.load_error}")

    # 2) Promote an existing account, or create a new one with a prompted password.
    try:
        user = store.find_user(args.username)
        store.update_user(user.model_copy(update={"role": ROLE_ADMIN, "status": STATUS_APPROVED}))
        print(f"Promoted existing user {args.username} to approved admin.")
    except NotFound:
        password = getpass.getpass(f"Password for new admin {args.username}: ")
        if not password or any(ch.isspace() for ch in password):
            raise SystemExit("Password must be non-empty and contain no whitespace.")
        store.create_user(User(
            username=args.username,
            password_hash=crypto.hash_password(password),
            role=ROLE_ADMIN,
            status=STATUS_APPROVED,
        ))
        print(f"Created approved admin {args.username} in {args.data_file}.")


if __name__ == "__main__":
    main()
