"""Command line entry point of the file sharing client."""

from __future__ import annotations

import argparse
import sys
import threading
from typing import TextIO

from itshare.client import connect, read_loop, send_user_input, write_loop
from itshare.helper import check_server_availability
from itshare.transfers import TransferRegistry
from itshare.ui import (
    command_color,
    error_color,
    header_color,
    info_color,
    print_banner,
    success_color,
)


def prompt_for_server_address(stream: TextIO | None = None) -> str:
    """Ask until the user gives a reachable ``host:port``; exit if they give up."""
    stream = stream if stream is not None else sys.stdin
    while True:
        print(info_color("Enter server address (format host:port):"))
        print(command_color(">>> "), end="", flush=True)
        line = stream.readline()
        if not line:
            raise SystemExit(1)
        address = line.strip()

        if ":" not in address:
            print(error_color("❌ Invalid address format. Please use host:port (e.g., localhost:8080)"))
            continue

        available, reason = check_server_availability(address)
        if available:
            return address

        print(error_color(f"❌ No server available at {address}: {reason}"))
        print(info_color("Would you like to try another address? (y/n)"))
        print(command_color(">>> "), end="", flush=True)
        retry = stream.readline().strip().lower()
        if retry not in ("y", "yes"):
            raise SystemExit(1)


def _login(conn, stream: TextIO) -> bool:
    print(info_color("Please login to continue:"))
    if send_user_input(conn, "Username", stream):
        return True
    send_user_input(conn, "Store File Path", stream)
    return True


def main(argv: list[str] | None = None) -> int:
    """Run the client: connect, log in, then chat and share files."""
    parser = argparse.ArgumentParser(prog="itshare-client")
    parser.add_argument("-server", "--server", default="", help="Server address in format host:port")
    args = parser.parse_args(argv)

    print_banner()
    stdin = sys.stdin

    address = args.server
    if not address:
        address = prompt_for_server_address(stdin)
    else:
        print(info_color(f"Connecting to server at {address}..."))
        available, reason = check_server_availability(address)
        if not available:
            print(error_color(f"❌ Error: No server running at {address}"))
            print(error_color(f"  Details: {reason}"))
            print(info_color("Please check the address or start a server first."))
            return 1

    try:
        conn = connect(address)
    except (OSError, ValueError) as exc:
        print(error_color("❌ Error connecting to server:"), exc)
        return 1

    with conn:
        try:
            _login(conn, stdin)
        except (OSError, EOFError) as exc:
            print(error_color("❌ Error during login:"), exc)
            return 1

        print(header_color("\n✨ Welcome to DrizLink - P2P File Sharing! ✨"))
        print(info_color("------------------------------------------------"))
        print(success_color("✅ Successfully connected to server!"))
        print(info_color("Type /help to see available commands"))
        print(info_color("------------------------------------------------"))

        registry = TransferRegistry()
        reader = threading.Thread(target=read_loop, args=(conn, registry), daemon=True)
        reader.start()
        write_loop(conn, registry, stdin)
        reader.join(timeout=1)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())