"""
LineBlog - a small multi-user blog server speaking a newline-delimited text
protocol over TCP.

Pieces:
- store:    users + blogs, atomic operations, JSON snapshot after each change.
- session:  per-connection state machine (login, menus, sub-dialogues).
- router:   line -> verb + arguments, per session phase.
- node:     asyncio server, connection registry, periodic connection report.
- crypto:   scrypt password hashing (never stores or logs plaintext).

Run a server with `python -m lineblog.run_node --mode server`.
"""
__all__ = ["config", "crypto", "errors", "framing", "messages", "models", "node", "router", "run_node", "session", "store"]
