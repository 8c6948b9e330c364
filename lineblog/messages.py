from typing import Iterable, List

from .models import PROFILE_FIELDS, Blog, User

"""
messages.py - every piece of text the server sends back.

Pure formatting: no decisions are made here. The session decides *what*
happened and picks the text from this module; nothing outside the session
should ever need to parse these strings.
"""

# -----------------------
# Fixed texts and prompts
# -----------------------
WELCOME = (
    "******Welcome to the LineBlog Server!******\n"
    "Type 'reg <username> <password>' to register.\n"
    "Type 'log <username> <password>' to log in.\n"
    "Type 'exit' to quit."
)
GOODBYE = "Goodbye!"
BACK_TO_MENU = "Returning to main menu."

INVALID_FORMAT = "Invalid command format."
UNKNOWN_COMMAND = "Unknown command."
NO_PERMISSION = "You do not have permission to perform this action."
INVALID_LOGIN = "Invalid username or password. Please try again."
REGISTERED = "Registration successful!"
REGISTRATION_FAILED = "Error: registration failed, please try again later."
IDLE_TIMEOUT = "Connection idle for too long. Goodbye!"

EDIT_PROFILE_PROMPT = "Would you like to edit your profile? (yes/no):"
PROFILE_UPDATED = "Profile updated successfully!"
PROFILE_EDIT_CANCELED = "Profile edit canceled."

BLOG_ACTION_PROMPT = "Would you like to post a new blog or delete one? (post/delete/exit):"
BLOG_TITLE_PROMPT = "Blog Title:"
BLOG_TEXT_PROMPT = "Blog Text:"
BLOG_INDEX_PROMPT = "Enter the blog number to delete:"
BLOG_POSTED = "Blog posted successfully!"
BLOG_DELETED = "Blog deleted successfully!"
BLOG_MISSING_FIELDS = "Blog title and text are required."
NO_BLOGS_TO_DELETE = "You have no blogs to delete."
INVALID_BLOG_NUMBER = "Invalid blog number."
INVALID_OPTION = "Invalid option."

ADMIN_APPLIED = "Admin application submitted successfully."
PENDING_ACTION_PROMPT = "Would you like to approve or reject any application? (approve/reject/exit):"
APPROVE_PROMPT = "Username to approve:"
REJECT_PROMPT = "Username to reject:"
PENDING_EXIT = "Exiting pending approvals."
USER_DELETED = "User deleted successfully!"
CANNOT_DELETE_SELF = "You cannot delete your own account."


def usage(form: str) -> str:
    return f"Usage: {form}"


def error(text: str) -> str:
    return f"Error: {text}"


def welcome_back(username: str, is_admin: bool) -> str:
    if is_admin:
        return f"Login successful. Welcome Admin, {username}!"
    return f"Login successful. Welcome, {username}!"


def menu(is_admin: bool) -> str:
    """Command list shown after login and after each finished command."""
    lines = ["Available commands:"]
    if is_admin:
        lines += ["- list-pending", "- list-users", "- delete-user <username>"]
    lines += ["- view-profile", "- my-blogs", "- apply-admin", "- exit"]
    return "\n".join(lines)


def profile(user: User) -> str:
    lines = [f"Profile of {user.username}:"]
    for attr, label in PROFILE_FIELDS:
        lines.append(f"{label}: {getattr(user, attr)}")
    return "\n".join(lines)


def field_prompt(index: int) -> str:
    return f"{PROFILE_FIELDS[index][1]}:"


def blog_list(blogs: List[Blog]) -> str:
    """Blogs numbered from 1, the numbers the delete prompt expects."""
    lines = ["Your Blogs:"]
    if not blogs:
        lines.append("(none)")
    for i, blog in enumerate(blogs, start=1):
        lines.append(f"{i}. {blog.title}")
        lines.append(f"   {blog.text}")
    return "\n".join(lines)


def user_list(users: Iterable[User]) -> str:
    lines = ["Users:"]
    for user in users:
        lines.append(f"- {user.username} (Role: {user.role}, Status: {user.status})")
    return "\n".join(lines)


def pending_list(users: Iterable[User]) -> str:
    lines = ["Pending Admin Approvals:"]
    names = [u.username for u in users]
    if not names:
        lines.append("(none)")
    lines += [f"- {name}" for name in names]
    return "\n".join(lines)


def approved(username: str) -> str:
    return f"Admin request approved for user: {username}"


def rejected(username: str) -> str:
    return f"Admin request rejected for user: {username}"


def join(*parts: str) -> str:
    """Glue non-empty blocks together, one per line."""
    return "\n".join(p for p in parts if p)
