import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import load_settings
from .errors import ConfigError
from .logger import setup_logging
from .node import BlogServer

"""
run_node.py - single entry point for the LineBlog server and its client.

What you can do here:
- Server:  listen for clients and serve the line protocol
- Client:  a tiny interactive terminal client; type commands, see replies

"""

logger = logging.getLogger(__name__)


# -------------------------
# Process runners (thin wrappers)
# -------------------------

async def run_server(settings) -> None:
    """Spin up the server and serve forever."""
    server = BlogServer(settings)
    await server.start()


async def run_client(host: str, port: int) -> None:
    """
    Connect to a server, print whatever it sends, forward stdin lines.
    Stops on 'exit', end of input, or when the server hangs up.
    """
    reader, writer = await asyncio.open_connection(host, port)
    loop = asyncio.get_running_loop()

    async def pump_server() -> None:
        while True:
            data = await reader.readline()
            if not data:
                print("Server closed the connection.")
                return
            print(data.decode("utf-8", errors="replace"), end="", flush=True)

    printer = asyncio.create_task(pump_server())
    try:
        while not printer.done():
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            writer.write(line.encode("utf-8") if line.endswith("\n") else (line + "\n").encode("utf-8"))
            await writer.drain()
            if line.strip() == "exit":
                # Let the farewell arrive before we leave.
                await asyncio.wait_for(printer, timeout=5)
                break
    except (ConnectionError, asyncio.TimeoutError):
        pass
    finally:
        printer.cancel()
        writer.close()
        try:
            await writer.wait_closed()
        except (ConnectionError, OSError):
            pass


# -------------------------
# Argument parsing
# -------------------------

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse modes and options. Environment variables give the defaults.

    Quick examples:
      Server:  python -m lineblog.run_node --mode server --port 8080 --data-file users.json
      Client:  python -m lineblog.run_node --mode client --host 127.0.0.1 --port 8080
    """
    p = argparse.ArgumentParser(prog="lineblog")
    p.add_argument("--mode", choices=["server", "client"], default="server")
    p.add_argument("--host")
    p.add_argument("--port", type=int)
    p.add_argument("--data-file", dest="data_file")
    p.add_argument("--idle-timeout", dest="idle_timeout", type=float,
                   help="Seconds before an idle connection is dropped (0 = never)")
    p.add_argument("--report-interval", dest="report_interval", type=float,
                   help="Seconds between connected-user reports (0 = off)")
    p.add_argument("--log-level", dest="log_level")
    return p.parse_args(argv)


# -------------------------
# Main entrypoint
# -------------------------

def main(argv: Optional[List[str]] = None) -> None:
    """Dispatch into the chosen mode; keep top-level code very small."""
    args = parse_args(argv)
    try:
        settings = load_settings().with_overrides(
            host=args.host,
            port=args.port,
            data_file=args.data_file,
            idle_timeout=args.idle_timeout,
            report_interval=args.report_interval,
            log_level=args.log_level.upper() if args.log_level else None,
        )
    except ConfigError as exc:
        raise SystemExit(f"Configuration error: {exc}")

    setup_logging(settings.log_level)

    try:
        if args.mode == "server":
            asyncio.run(run_server(settings))
        else:
            asyncio.run(run_client(settings.host, settings.port))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
