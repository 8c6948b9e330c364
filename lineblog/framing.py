import asyncio

from .errors import TransportFailure

"""
framing.py - newline-delimited UTF-8 text framing for asyncio streams.

Protocol (simple on purpose):
- Each message is one line of UTF-8 text terminated by '\\n' ('\\r\\n' is
  accepted too, the '\\r' is stripped).
- Hard cap of 64 KiB per line so a misbehaving peer can't make us buffer
  unbounded input. The cap is enforced by the stream's own limit, so the
  server must create its streams with `limit=MAX_LINE_SIZE`.
- Undecodable bytes are replaced rather than rejected; the session only ever
  sees str.

Every transport problem (EOF, reset, oversized line) surfaces as a single
TransportFailure so callers have exactly one thing to catch.
"""

MAX_LINE_SIZE = 64 * 1024  # 64 KiB hard limit
NEWLINE = b"\n"


async def read_line(reader: asyncio.StreamReader) -> str:
    """
    Read one line and return it without the line terminator.

    Raises:
        TransportFailure: peer closed, connection broke, or line too long.
    """
    try:
        raw = await reader.readuntil(NEWLINE)
    except asyncio.IncompleteReadError as exc:
        # EOF before a full line; a partial trailing line is dropped.
        raise TransportFailure("Connection closed by peer") from exc
    except asyncio.LimitOverrunError as exc:
        raise TransportFailure(f"Line exceeds {MAX_LINE_SIZE} bytes") from exc
    except (ConnectionError, OSError) as exc:
        raise TransportFailure(f"Read failed: {exc}") from exc
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


async def write_line(writer: asyncio.StreamWriter, text: str) -> None:
    """Write `text` followed by a newline and wait for the buffer to drain."""
    payload = text.encode("utf-8")
    if not payload.endswith(NEWLINE):
        payload += NEWLINE
    try:
        writer.write(payload)
        await writer.drain()  # Let the transport flush; important under backpressure.
    except (ConnectionError, OSError) as exc:
        raise TransportFailure(f"Write failed: {exc}") from exc
