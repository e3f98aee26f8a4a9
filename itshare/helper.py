"""Checksums, connectivity probes, user ids and folder archiving."""

from __future__ import annotations

import hashlib
import io
import os
import random
import shutil
import socket
import zipfile
from pathlib import Path
from typing import BinaryIO, Iterator

_CHUNK = 64 * 1024


def calculate_file_checksum(path: str | os.PathLike[str]) -> str:
    """Return the hex MD5 digest of the file at ``path``."""
    digest = hashlib.md5()
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


def calculate_data_checksum(stream: BinaryIO) -> tuple[str, io.BytesIO]:
    """Read ``stream`` fully; return its MD5 digest and a fresh stream of the same bytes."""
    data = stream.read()
    return hashlib.md5(data).hexdigest(), io.BytesIO(data)


def verify_checksum(original: str, received: str) -> bool:
    """Tell whether two checksums match."""
    return original == received


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address}: missing port in address")
    host = host.strip("[]")
    try:
        return host, int(port)
    except ValueError:
        raise ValueError(f"address {address}: invalid port") from None


def check_server_availability(address: str) -> tuple[bool, str]:
    """Try a TCP connection to ``host:port``; return success and a reason on failure."""
    try:
        host, port = _split_address(address)
    except ValueError as exc:
        return False, str(exc)
    try:
        with socket.create_connection((host, port), timeout=3):
            pass
    except ConnectionRefusedError:
        return False, "Connection refused - no server running at this address"
    except socket.gaierror:
        return False, "Host not found - check if the hostname is correct"
    except TimeoutError:
        return False, "Connection timed out - server might be behind a firewall"
    except OSError as exc:
        return False, str(exc)
    return True, ""


def is_port_in_use(port: str | int) -> bool:
    """Tell whether something accepts TCP connections on the local ``port``."""
    port_text = str(port).removeprefix(":")
    try:
        port_num = int(port_text)
    except ValueError:
        return False
    try:
        with socket.create_connection(("localhost", port_num), timeout=1):
            pass
    except OSError:
        return False
    return True


def generate_user_id() -> str:
    """Return a random user id below ten million, as text."""
    return str(random.randrange(10_000_000))


def _walk(root: Path) -> Iterator[Path]:
    """Yield every path under ``root`` depth first, in lexical order per directory."""
    for entry in sorted(os.scandir(root), key=lambda e: e.name):
        path = Path(entry.path)
        yield path
        if entry.is_dir(follow_symlinks=False):
            yield from _walk(path)


def create_zip_from_folder(folder_path: str | os.PathLike[str], zip_path: str | os.PathLike[str]) -> None:
    """Write a deflated zip archive of everything inside ``folder_path``."""
    root = Path(folder_path)
    root.stat()
    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        if not root.is_dir():
            return
        for path in _walk(root):
            arcname = path.relative_to(root).as_posix()
            archive.write(path, arcname=arcname, compress_type=zipfile.ZIP_DEFLATED)


def extract_zip(zip_path: str | os.PathLike[str], dest_path: str | os.PathLike[str]) -> None:
    """Extract the archive at ``zip_path`` into ``dest_path``."""
    dest = Path(dest_path)
    with zipfile.ZipFile(zip_path) as archive:
        for info in archive.infolist():
            target = dest / info.filename
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            mode = (info.external_attr >> 16) & 0o777 or 0o666
            fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
            with os.fdopen(fd, "wb") as dst, archive.open(info) as src:
                shutil.copyfileobj(src, dst)