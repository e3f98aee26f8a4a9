"""Tracking, pausing and reporting of file and folder transfers."""

from __future__ import annotations

import enum
import threading
import time
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable

from itshare.ui import (
    command_color,
    error_color,
    header_color,
    info_color,
    success_color,
    user_color,
    warning_color,
)

CHUNK_SIZE = 32768
_PAUSE_POLL = 0.5


class TransferType(enum.Enum):
    """What a transfer carries."""

    FILE = enum.auto()
    FOLDER = enum.auto()


class TransferStatus(enum.Enum):
    """Where a transfer stands."""

    ACTIVE = "Active"
    PAUSED = "Paused"
    COMPLETED = "Completed"
    FAILED = "Failed"

    def __str__(self) -> str:
        return self.value


class TransferError(Exception):
    """Raised when a transfer cannot be found or changed as asked."""


@dataclass
class Transfer:
    """An ongoing file or folder transfer."""

    id: str
    kind: TransferType
    name: str
    size: int
    bytes_complete: int = 0
    status: TransferStatus = TransferStatus.ACTIVE
    direction: str = "send"
    recipient: str = ""
    path: str = ""
    checksum: str = ""
    start_time: float = field(default_factory=time.time)
    file: Any = None
    connection: Any = None
    progress_bar: Any = None
    is_paused: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def paused(self) -> bool:
        """Whether the transfer is currently paused."""
        with self.lock:
            return self.is_paused

    @property
    def progress(self) -> float:
        """Completion in percent."""
        if self.size == 0:
            return float("nan")
        return self.bytes_complete / self.size * 100


class TransferRegistry:
    """Thread-safe collection of active transfers and their id counter."""

    def __init__(self) -> None:
        self._transfers: dict[str, Transfer] = {}
        self._lock = threading.RLock()
        self._next_id = 1

    def register(self, transfer: Transfer) -> None:
        """Track ``transfer`` under its id."""
        with self._lock:
            self._transfers[transfer.id] = transfer

    def generate_id(self) -> str:
        """Return the next transfer id, counting up from 1."""
        with self._lock:
            transfer_id = str(self._next_id)
            self._next_id += 1
            return transfer_id

    def get(self, transfer_id: str) -> Transfer | None:
        """Return the transfer with ``transfer_id``, or None."""
        with self._lock:
            return self._transfers.get(transfer_id)

    def remove(self, transfer_id: str) -> None:
        """Stop tracking the transfer with ``transfer_id``."""
        with self._lock:
            self._transfers.pop(transfer_id, None)

    def _require(self, transfer_id: str) -> Transfer:
        transfer = self.get(transfer_id)
        if transfer is None:
            raise TransferError(f"transfer with ID {transfer_id} not found")
        return transfer

    def pause(self, transfer_id: str) -> None:
        """Pause an active transfer."""
        transfer = self._require(transfer_id)
        with transfer.lock:
            if transfer.status is not TransferStatus.ACTIVE:
                raise TransferError(f"cannot pause transfer with status: {transfer.status}")
            transfer.status = TransferStatus.PAUSED
            transfer.is_paused = True
            if transfer.progress_bar is not None:
                transfer.progress_bar.set_paused(True)

    def resume(self, transfer_id: str) -> None:
        """Resume a paused transfer."""
        transfer = self._require(transfer_id)
        with transfer.lock:
            if transfer.status is not TransferStatus.PAUSED:
                raise TransferError(f"cannot resume transfer with status: {transfer.status}")
            transfer.status = TransferStatus.ACTIVE
            transfer.is_paused = False
            if transfer.progress_bar is not None:
                transfer.progress_bar.set_paused(False)

    def update_status(self, transfer_id: str, status: TransferStatus) -> None:
        """Set the status of a tracked transfer; unknown ids are ignored."""
        transfer = self.get(transfer_id)
        if transfer is None:
            return
        with transfer.lock:
            transfer.status = status

    def list_transfers(self) -> list[Transfer]:
        """Return a snapshot of all tracked transfers."""
        with self._lock:
            return list(self._transfers.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._transfers)


def _wait_while_paused(transfer: Transfer, interval: float) -> None:
    while transfer.paused:
        time.sleep(interval)


class CheckpointedReader:
    """Reads from a stream, counting progress and holding back while paused."""

    def __init__(
        self,
        reader: BinaryIO,
        transfer: Transfer,
        chunk_size: int = CHUNK_SIZE,
        *,
        poll_interval: float = _PAUSE_POLL,
    ) -> None:
        self.reader = reader
        self.transfer = transfer
        self.chunk_size = chunk_size
        self.poll_interval = poll_interval
        self.bytes_read = 0

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes (one chunk if negative), waiting while paused."""
        _wait_while_paused(self.transfer, self.poll_interval)
        if size is None or size < 0:
            size = self.chunk_size
        data = self.reader.read(size)
        if data:
            self.bytes_read += len(data)
            self.transfer.bytes_complete = self.bytes_read
        return data


class CheckpointedWriter:
    """Writes to a stream, counting progress and holding back while paused."""

    def __init__(
        self,
        writer: BinaryIO,
        transfer: Transfer,
        chunk_size: int = CHUNK_SIZE,
        *,
        poll_interval: float = _PAUSE_POLL,
    ) -> None:
        self.writer = writer
        self.transfer = transfer
        self.chunk_size = chunk_size
        self.poll_interval = poll_interval
        self.bytes_written = 0

    def write(self, data: bytes) -> int:
        """Write ``data``, waiting while paused; return the number of bytes written."""
        _wait_while_paused(self.transfer, self.poll_interval)
        written = self.writer.write(data)
        if written is None:
            written = len(data)
        if written > 0:
            self.bytes_written += written
            self.transfer.bytes_complete = self.bytes_written
        return written


def parse_transfer_name(name: str, registry: TransferRegistry) -> tuple[str, str, str]:
    """Split ``name|checksum|id`` into its parts, generating an id when absent."""
    parts = name.split("|", 2)
    checksum = ""
    transfer_id = ""
    if len(parts) >= 2:
        name, checksum = parts[0], parts[1]
        if len(parts) >= 3:
            transfer_id = parts[2]
    if not transfer_id:
        transfer_id = registry.generate_id()
    return name, checksum, transfer_id


def format_transfer_type(kind: TransferType) -> str:
    """Return a readable name for a transfer type."""
    return {TransferType.FILE: "File", TransferType.FOLDER: "Folder"}.get(kind, "Unknown")


_UNITS: tuple[tuple[str, float], ...] = (
    ("TB", float(1 << 40)),
    ("GB", float(1 << 30)),
    ("MB", float(1 << 20)),
    ("KB", float(1 << 10)),
)


def format_size(num_bytes: int) -> str:
    """Format a byte count with a binary unit."""
    size, unit = float(num_bytes), "bytes"
    for name, factor in _UNITS:
        if num_bytes >= factor:
            size, unit = num_bytes / factor, name
            break
    if size >= 100 or unit == "bytes":
        return f"{size:.0f} {unit}"
    return f"{size:.1f} {unit}"


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as days, hours, minutes or seconds."""
    hours = seconds / 3600
    minutes = seconds / 60
    if hours >= 24:
        return f"{int(hours / 24)}d {int(hours) % 24}h"
    if hours >= 1:
        return f"{int(hours)}h {int(minutes) % 60}m"
    if minutes >= 1:
        return f"{int(minutes)}m {int(seconds) % 60}s"
    return f"{int(seconds)}s"


_STATUS_STYLE: dict[TransferStatus, tuple[Callable[[Any], str], str]] = {
    TransferStatus.ACTIVE: (success_color, "▶ "),
    TransferStatus.PAUSED: (warning_color, "⏸ "),
    TransferStatus.COMPLETED: (success_color, "✅ "),
    TransferStatus.FAILED: (error_color, "❌ "),
}


def show_transfers(registry: TransferRegistry) -> None:
    """Print every tracked transfer with its progress."""
    transfers = registry.list_transfers()
    if not transfers:
        print(info_color("📡 No active transfers"))
        return

    print(header_color("📡 Active Transfers:"))
    print(info_color("-----------------------------------"))
    for transfer in transfers:
        paint, icon = _STATUS_STYLE.get(transfer.status, (info_color, ""))
        direction_icon = "📥 " if transfer.direction == "receive" else "📤 "
        print(
            f"{paint(icon)} {direction_icon}{command_color('ID: ' + transfer.id)} "
            f"{info_color(transfer.name)} ({paint(str(transfer.status))})"
        )
        print(
            f"   Type: {format_transfer_type(transfer.kind)} | Size: {format_size(transfer.size)} | "
            f"Progress: {transfer.progress:.1f}% "
            f"({format_size(transfer.bytes_complete)}/{format_size(transfer.size)})"
        )
        relation = "To" if transfer.direction == "send" else "From"
        elapsed = format_duration(time.time() - transfer.start_time)
        print(f"   {relation}: {user_color(transfer.recipient)} | Started: {elapsed} ago")
        print(info_color("   ---"))

    print(info_color("Commands:"))
    print(f"  {command_color('/pause <transferId>')} - Pause a transfer")
    print(f"  {command_color('/resume <transferId>')} - Resume a paused transfer")
    print(info_color("-----------------------------------"))


def _print_details(transfer: Transfer) -> None:
    print(
        f"  {info_color('Name')}: {info_color(transfer.name)} "
        f"({info_color(format_transfer_type(transfer.kind))})"
    )
    print(
        f"  {info_color('Progress')}: {info_color(format_size(transfer.bytes_complete))} / "
        f"{info_color(format_size(transfer.size))} ({transfer.progress:.1f}%)"
    )


def handle_pause(registry: TransferRegistry, transfer_id: str) -> None:
    """Pause a transfer on the user's request and report the outcome."""
    transfer = registry.get(transfer_id)
    if transfer is None:
        print(error_color("❌ Transfer not found:"), command_color(transfer_id))
        return
    if transfer.status is not TransferStatus.ACTIVE:
        print(
            f"{warning_color('⚠')} Transfer {command_color(transfer_id)} is already "
            f"{warning_color(str(transfer.status))}"
        )
        return
    try:
        registry.pause(transfer_id)
    except TransferError as exc:
        print(error_color("❌ Failed to pause transfer:"), exc)
        return
    print(f"{warning_color('⏸')} Transfer {command_color(transfer_id)} paused")
    _print_details(transfer)


def handle_resume(registry: TransferRegistry, transfer_id: str) -> None:
    """Resume a transfer on the user's request and report the outcome."""
    transfer = registry.get(transfer_id)
    if transfer is None:
        print(error_color("❌ Transfer not found:"), command_color(transfer_id))
        return
    if transfer.status is not TransferStatus.PAUSED:
        print(
            f"{warning_color('⚠')} Transfer {command_color(transfer_id)} is not paused "
            f"(current status: {warning_color(str(transfer.status))})"
        )
        return
    try:
        registry.resume(transfer_id)
    except TransferError as exc:
        print(error_color("❌ Failed to resume transfer:"), exc)
        return
    print(f"{success_color('▶')} Transfer {command_color(transfer_id)} resumed")
    _print_details(transfer)