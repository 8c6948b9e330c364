"""
errors.py - the failure taxonomy shared by the store, the credential helpers
and the session engine.

Store and crypto code raise these; the session turns them into replies.
Nothing here is ever allowed to take the whole server down.
"""


class LineBlogError(Exception):
    """Base class for every error this package raises on purpose."""


class NotFound(LineBlogError):
    """Unknown username or blog id."""


class AlreadyExists(LineBlogError):
    """Username already taken."""


class Forbidden(LineBlogError):
    """Caller is not allowed to do this (not the author, not an admin)."""


class InvalidState(LineBlogError):
    """Record is not in the state the operation requires."""


class InvalidFormat(LineBlogError):
    """Command line could not be parsed at all."""


class InvalidInput(LineBlogError):
    """Follow-up input was malformed (bad index, missing title, ...)."""


class AuthFailure(LineBlogError):
    """Bad credentials. Deliberately says nothing about which part was wrong."""


class HashingFailure(LineBlogError):
    """The credential subsystem failed internally."""


class TransportFailure(LineBlogError):
    """Read/write on a connection failed; ends only that session."""


class ConfigError(LineBlogError):
    """Bad configuration value."""
