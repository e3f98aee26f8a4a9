"""Command line entry point of the relay server."""

from __future__ import annotations

import argparse

from itshare.helper import is_port_in_use
from itshare.server import ChatServer
from itshare.ui import error_color, info_color, print_banner

HEARTBEAT_INTERVAL = 100.0


def main(argv: list[str] | None = None) -> int:
    """Start the server on the requested port and serve until interrupted."""
    parser = argparse.ArgumentParser(prog="itshare-server")
    parser.add_argument("-port", "--port", default="8080", help="The port to listen on")
    args = parser.parse_args(argv)

    port = args.port
    address = port if port.startswith(":") else ":" + port

    if is_port_in_use(port):
        print(error_color(f"❌ Error: Port {port} is already in use"))
        print(info_color("Please choose a different port or stop the other server."))
        return 1

    print_banner()
    print(info_color(f"Starting server on port {port}..."))

    server = ChatServer(address)
    server.start_heartbeat(HEARTBEAT_INTERVAL)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        server.shutdown()
    except (OSError, ValueError) as exc:
        print(error_color("❌ Error starting server:"), exc)
        server.shutdown()
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())