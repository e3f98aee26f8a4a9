"""Finding servers on the local network by their UDP broadcasts."""

from __future__ import annotations

import socket
import sys
import time
from dataclasses import dataclass
from typing import TextIO

from itshare.ui import command_color, header_color, info_color, success_color, warning_color

DISCOVERY_PORT = 9876
_PREFIX = "DRIZLINK_SERVER:"


@dataclass(frozen=True)
class DiscoveredServer:
    """A server announced on the local network."""

    address: str
    ip: str
    port: str


class ManualEntryRequested(Exception):
    """Raised when the user chooses to type a server address by hand."""


def parse_broadcast(message: str) -> DiscoveredServer | None:
    """Parse ``DRIZLINK_SERVER:<ip>:<port>``; return None for anything else."""
    if not message.startswith(_PREFIX):
        return None
    parts = message.split(":")
    if len(parts) != 3:
        return None
    ip, port = parts[1], parts[2]
    return DiscoveredServer(address=f"{ip}:{port}", ip=ip, port=port)


def discover_servers(timeout: float, port: int = DISCOVERY_PORT) -> list[DiscoveredServer]:
    """Listen for server broadcasts for ``timeout`` seconds; return each server once."""
    print(info_color("🔍 Scanning for DrizLink servers on local network..."))
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    except OSError as exc:
        raise OSError(f"error creating UDP listener: {exc}") from exc
    servers: list[DiscoveredServer] = []
    seen: set[str] = set()
    with sock:
        try:
            sock.bind(("", port))
        except OSError as exc:
            raise OSError(f"error creating UDP listener: {exc}") from exc
        print(info_color("   Listening for broadcasts for"), command_color(f"{timeout:g}s"))
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            sock.settimeout(remaining)
            try:
                data, (sender_ip, _) = sock.recvfrom(1024)
            except socket.timeout:
                break
            except OSError:
                continue
            server = parse_broadcast(data.decode("utf-8", errors="replace"))
            if server is None or server.address in seen:
                continue
            seen.add(server.address)
            servers.append(server)
            print(
                f"{success_color('✅')} Found server: {info_color(server.address)} "
                f"(from {command_color(sender_ip)})"
            )
    return servers


def select_server(servers: list[DiscoveredServer], stream: TextIO | None = None) -> str:
    """Ask the user to pick one of ``servers``; return its address."""
    if not servers:
        raise ValueError("no servers discovered")
    stream = stream if stream is not None else sys.stdin
    manual = len(servers) + 1

    print(header_color("\n📡 Discovered DrizLink Servers:"))
    print(info_color("--------------------------------"))
    for number, server in enumerate(servers, start=1):
        print(f"{command_color(f'[{number}]')} {info_color('Server at')} {success_color(server.address)}")
    print(f"{command_color(f'[{manual}]')} {warning_color('Enter server address manually')}")
    print(info_color("--------------------------------"))
    print(command_color(f"Select server (1-{manual}): "), end="", flush=True)

    try:
        choice = int(stream.readline().strip())
    except ValueError:
        raise ValueError("invalid input") from None
    if not 1 <= choice <= manual:
        raise ValueError("invalid choice")
    if choice == manual:
        raise ManualEntryRequested("manual_entry_requested")

    selected = servers[choice - 1]
    print(f"{success_color('✅')} Selected server: {info_color(selected.address)}")
    return selected.address