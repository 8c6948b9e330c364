import asyncio
import logging
import threading
from typing import Dict, List, Optional, Tuple

from . import messages as m
from .config import Settings
from .errors import TransportFailure
from .framing import MAX_LINE_SIZE, read_line, write_line
from .session import Session
from .store import Store

"""
node.py - the TCP server: accept connections, run one Session per socket.

What lives here:
- ConnectionRegistry: peer address -> writer, guarded by one lock. Only used
  for the periodic "who is connected" report.
- BlogServer: asyncio listener; each connection gets its own task running
  handle_conn(), which reads a line, lets the Session answer it, writes the
  answer back, and repeats until exit / disconnect / idle timeout.

Notes:
- Reading the next line is the only place a connection waits. Session work
  runs in a worker thread (asyncio.to_thread) because password hashing is
  CPU-heavy and must not stall other connections; the Store is locked
  internally so that is safe.
- However a session ends, its registry entry is removed and its transport
  closed exactly once (the finally block in handle_conn).
"""

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Live connections keyed by peer address."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._conns: Dict[str, asyncio.StreamWriter] = {}

    def add(self, peer: str, writer: asyncio.StreamWriter) -> None:
        with self._lock:
            self._conns[peer] = writer

    def remove(self, peer: str) -> bool:
        """Drop `peer`; returns False if it was already gone."""
        with self._lock:
            return self._conns.pop(peer, None) is not None

    def snapshot(self) -> Tuple[int, List[str]]:
        with self._lock:
            peers = list(self._conns)
        return len(peers), peers

    def __len__(self) -> int:
        with self._lock:
            return len(self._conns)


def peer_name(writer: asyncio.StreamWriter) -> str:
    info = writer.get_extra_info("peername")
    if isinstance(info, tuple) and len(info) >= 2:
        return f"{info[0]}:{info[1]}"
    return str(info)


class BlogServer:
    """
    Line-protocol server around a shared Store.

    Typical usage:
        server = BlogServer(settings)
        await server.start()          # serve forever
    or, for tests:
        await server.listen()         # bind, returns once listening
        ... connect to server.port ...
        await server.stop()
    """

    def __init__(self, settings: Settings, store: Optional[Store] = None) -> None:
        self.settings = settings
        self.store = store if store is not None else Store(settings.data_file)
        self.registry = ConnectionRegistry()
        self._server: Optional[asyncio.AbstractServer] = None
        self._reporter: Optional[asyncio.Task] = None

    @property
    def port(self) -> int:
        """Actual bound port (useful when configured with port 0)."""
        if self._server is None or not self._server.sockets:
            return self.settings.port
        return self._server.sockets[0].getsockname()[1]

    async def listen(self) -> None:
        """Bind the listening socket and start the connection reporter."""
        self._server = await asyncio.start_server(
            self.handle_conn, self.settings.host, self.settings.port, limit=MAX_LINE_SIZE
        )
        addrs = ", ".join(str(sock.getsockname()) for sock in self._server.sockets or [])
        logger.info("Server listening on %s", addrs)
        if self.settings.report_interval > 0:
            self._reporter = asyncio.create_task(self.report_connections())

    async def start(self) -> None:
        """Listen and serve until cancelled."""
        await self.listen()
        try:
            async with self._server:
                await self._server.serve_forever()
        finally:
            await self.stop()

    async def stop(self) -> None:
        if self._reporter is not None:
            self._reporter.cancel()
            try:
                await self._reporter
            except asyncio.CancelledError:
                pass
            self._reporter = None
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def report_connections(self) -> None:
        """Every report_interval seconds, log how many clients are connected."""
        while True:
            await asyncio.sleep(self.settings.report_interval)
            count, peers = self.registry.snapshot()
            logger.info("Connected users (%d): %s", count, ", ".join(peers) or "-")

    async def _next_line(self, reader: asyncio.StreamReader) -> str:
        timeout = self.settings.idle_timeout
        if timeout > 0:
            return await asyncio.wait_for(read_line(reader), timeout)
        return await read_line(reader)

    async def handle_conn(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Per-connection loop: read a line, let the session answer, write it back."""
        peer = peer_name(writer)
        session = Session(self.store, peer=peer)
        self.registry.add(peer, writer)
        logger.info("Connection from %s", peer)
        try:
            await write_line(writer, session.greeting().text)
            while not session.closed:
                try:
                    line = await self._next_line(reader)
                except asyncio.TimeoutError:
                    logger.info("Idle timeout for %s", peer)
                    await write_line(writer, m.IDLE_TIMEOUT)
                    break
                reply = await asyncio.to_thread(session.handle, line)
                await write_line(writer, reply.text)
                if reply.closed:
                    break
        except TransportFailure as exc:
            logger.info("Connection %s ended: %s", peer, exc)
        except Exception:
            # Never let one broken session take the server down.
            logger.exception("Unexpected error in session %s", peer)
        finally:
            session.terminate()
            self.registry.remove(peer)
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass
            logger.info("Connection from %s closed", peer)
