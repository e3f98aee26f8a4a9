"""Sending, receiving and listing shared folders on the client side."""

from __future__ import annotations

import contextlib
import os
import stat
import zipfile
from typing import Any, Callable, Iterator

from itshare.helper import (
    calculate_file_checksum,
    create_zip_from_folder,
    extract_zip,
    verify_checksum,
)
from itshare.transfers import (
    CHUNK_SIZE,
    CheckpointedReader,
    CheckpointedWriter,
    Transfer,
    TransferRegistry,
    TransferStatus,
    TransferType,
    parse_transfer_name,
)
from itshare.ui import (
    command_color,
    create_progress_bar,
    error_color,
    info_color,
    success_color,
    user_color,
)


def _pump(read: Callable[[int], bytes], write: Callable[[bytes], Any], size: int, bar: Any) -> int:
    """Copy up to ``size`` bytes from ``read`` to ``write``, counting them on ``bar``."""
    copied = 0
    while copied < size:
        chunk = read(min(CHUNK_SIZE, size - copied))
        if not chunk:
            break
        write(chunk)
        bar.write(chunk)
        copied += len(chunk)
    return copied


def _transfer_bytes(
    registry: TransferRegistry,
    transfer: Transfer,
    read: Callable[[int], bytes],
    write: Callable[[bytes], Any],
    action: str,
) -> bool:
    """Stream a transfer's payload; on failure mark it failed, report and untrack it."""
    bar = transfer.progress_bar
    try:
        copied = _pump(read, write, transfer.size, bar)
    except OSError as exc:
        registry.update_status(transfer.id, TransferStatus.FAILED)
        print(error_color(f"\n❌ Error {action}:"), exc)
        registry.remove(transfer.id)
        return False
    finally:
        bar.close()
    if copied != transfer.size:
        registry.update_status(transfer.id, TransferStatus.FAILED)
        verb = "sent" if transfer.direction == "send" else "received"
        print(
            error_color(f"\n❌ Error: {verb}"),
            error_color(copied),
            error_color("bytes, expected"),
            error_color(transfer.size),
            error_color("bytes"),
        )
        registry.remove(transfer.id)
        return False
    return True


def send_folder(
    conn: Any, recipient_id: str, folder_path: str | os.PathLike[str], registry: TransferRegistry
) -> Transfer | None:
    """Zip a folder and stream it to ``recipient_id``; return the transfer, or None if it never started."""
    print(info_color("📦 Preparing folder for transfer..."))
    folder_path = os.fspath(folder_path)
    temp_zip = folder_path + ".zip"
    try:
        try:
            create_zip_from_folder(folder_path, temp_zip)
        except OSError as exc:
            print(error_color("❌ Error creating zip file:"), exc)
            return None
        try:
            zip_file = open(temp_zip, "rb")
        except OSError as exc:
            print(error_color("❌ Error opening temp zip file:"), exc)
            return None
        with zip_file:
            return _stream_folder(conn, recipient_id, folder_path, temp_zip, zip_file, registry)
    finally:
        with contextlib.suppress(FileNotFoundError):
            os.remove(temp_zip)


def _stream_folder(
    conn: Any,
    recipient_id: str,
    folder_path: str,
    temp_zip: str,
    zip_file: Any,
    registry: TransferRegistry,
) -> Transfer | None:
    try:
        zip_size = os.fstat(zip_file.fileno()).st_size
    except OSError as exc:
        print(error_color("❌ Error getting zip file info:"), exc)
        return None
    folder_name = os.path.basename(os.path.normpath(folder_path))

    try:
        checksum = calculate_file_checksum(temp_zip)
    except OSError as exc:
        print(error_color("❌ Error calculating checksum:"), exc)
        return None

    transfer_id = registry.generate_id()
    print(
        f"{info_color('📤')} Sending folder '{info_color(folder_name)}' to user "
        f"{user_color(recipient_id)} (Transfer ID: {command_color(transfer_id)})..."
    )
    request = f"/FOLDER_REQUEST {recipient_id} {folder_name} {zip_size} {checksum} {transfer_id}\n"
    try:
        conn.sendall(request.encode())
    except OSError as exc:
        print(error_color("❌ Error sending folder request:"), exc)
        return None

    bar = create_progress_bar(zip_size, "📤 Sending folder")
    bar.transfer_id = transfer_id
    transfer = Transfer(
        id=transfer_id,
        kind=TransferType.FOLDER,
        name=folder_name,
        size=zip_size,
        direction="send",
        recipient=recipient_id,
        path=folder_path,
        checksum=checksum,
        file=zip_file,
        connection=conn,
        progress_bar=bar,
    )
    registry.register(transfer)

    reader = CheckpointedReader(zip_file, transfer, CHUNK_SIZE)
    if not _transfer_bytes(registry, transfer, reader.read, conn.sendall, "sending folder"):
        return transfer

    registry.update_status(transfer_id, TransferStatus.COMPLETED)
    print(success_color("\n✅ Folder"), success_color(folder_name), success_color("sent successfully!"))
    print(info_color("  MD5 Checksum:"), info_color(checksum))
    registry.remove(transfer_id)
    return transfer


def receive_folder(
    conn: Any,
    recipient_id: str,
    folder_name: str,
    folder_size: int,
    store_path: str | os.PathLike[str],
    registry: TransferRegistry,
) -> Transfer | None:
    """Receive a zipped folder from ``conn`` and unpack it under ``store_path``."""
    folder_name, checksum, transfer_id = parse_transfer_name(folder_name, registry)
    store_path = os.fspath(store_path)
    temp_zip = os.path.join(store_path, folder_name + ".zip")
    try:
        zip_file = open(temp_zip, "wb")
    except OSError as exc:
        print(exc)
        return None

    bar = create_progress_bar(folder_size, "📥 Receiving folder")
    bar.transfer_id = transfer_id
    transfer = Transfer(
        id=transfer_id,
        kind=TransferType.FOLDER,
        name=folder_name,
        size=folder_size,
        direction="receive",
        recipient=recipient_id,
        path=temp_zip,
        checksum=checksum,
        file=zip_file,
        connection=conn,
        progress_bar=bar,
    )
    registry.register(transfer)

    writer = CheckpointedWriter(zip_file, transfer, CHUNK_SIZE)
    with zip_file:
        received = _transfer_bytes(registry, transfer, conn.recv, writer.write, "receiving folder")
    if not received:
        with contextlib.suppress(FileNotFoundError):
            os.remove(temp_zip)
        return transfer

    if checksum:
        try:
            received_checksum = calculate_file_checksum(temp_zip)
        except OSError as exc:
            print(exc)
        else:
            if verify_checksum(checksum, received_checksum):
                print("✅ Checksum verification successful! Folder integrity confirmed.")
            else:
                print("❌ Checksum verification failed! Folder may be corrupted.")

    print("\n📦 Extracting folder...")
    dest_path = os.path.join(store_path, folder_name)
    try:
        extract_zip(temp_zip, dest_path)
    except (OSError, zipfile.BadZipFile) as exc:
        registry.update_status(transfer_id, TransferStatus.FAILED)
        with contextlib.suppress(FileNotFoundError):
            os.remove(temp_zip)
        print(exc)
        registry.remove(transfer_id)
        return transfer

    registry.update_status(transfer_id, TransferStatus.COMPLETED)
    with contextlib.suppress(FileNotFoundError):
        os.remove(temp_zip)
    registry.remove(transfer_id)
    return transfer


def request_lookup(conn: Any, user_id: str) -> None:
    """Ask the server for the shared files of ``user_id``."""
    try:
        conn.sendall(f"/LOOK {user_id}\n".encode())
    except OSError as exc:
        print(f"Error sending look request: {exc}")


def _walk(directory: str) -> Iterator[tuple[str, os.stat_result]]:
    """Yield every path below ``directory`` with its lstat, depth first in lexical order."""
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except OSError as exc:
        print(f"Error accessing path {directory}: {exc}")
        return
    for entry in entries:
        try:
            info = entry.stat(follow_symlinks=False)
        except OSError as exc:
            print(f"Error accessing path {entry.path}: {exc}")
            continue
        yield entry.path, info
        if stat.S_ISDIR(info.st_mode):
            yield from _walk(entry.path)


def build_listing(store_path: str | os.PathLike[str]) -> list[str]:
    """Return the listing lines for everything below ``store_path``, folders first."""
    root = os.path.abspath(os.path.normpath(os.fspath(store_path).strip()))
    try:
        info = os.stat(root)
    except FileNotFoundError:
        raise FileNotFoundError(f"Store directory does not exist: {root}") from None
    if not stat.S_ISDIR(info.st_mode):
        raise NotADirectoryError(f"Path is not a directory: {root}")

    folders: list[str] = []
    files: list[str] = []
    for path, entry_info in _walk(root):
        shown = path.replace(os.sep, "/")
        if stat.S_ISDIR(entry_info.st_mode):
            folders.append(f"[FOLDER] {shown} (Size: {entry_info.st_size} bytes)")
        else:
            files.append(f"[FILE] {shown} (Size: {entry_info.st_size} bytes)")

    entries: list[str] = []
    if folders:
        entries.append("=== FOLDERS ===")
        entries.extend(folders)
    if files:
        if entries:
            entries.append("")
        entries.append("=== FILES ===")
        entries.extend(files)
    if not entries:
        entries.append("Directory is empty")
    return entries


def respond_lookup(conn: Any, store_path: str | os.PathLike[str], user_id: str) -> list[str] | None:
    """Send the listing of ``store_path`` back for ``user_id``; return the lines sent."""
    try:
        entries = build_listing(store_path)
    except (FileNotFoundError, NotADirectoryError) as exc:
        print(exc)
        return None
    except OSError as exc:
        print(f"Error accessing directory: {exc}")
        return None

    body = "\n".join(entries)
    try:
        conn.sendall(f"LOOK_RESPONSE {user_id} {body}\n".encode())
    except OSError as exc:
        print(f"Error sending lookup response: {exc}")

    for entry in entries:
        print(entry)
    return entries