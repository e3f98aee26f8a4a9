"""Terminal colours, banners, help text and transfer progress bars."""

from __future__ import annotations

import sys
import threading
import time
from typing import Any, Iterable, TextIO

from termcolor import colored
from tqdm import tqdm


def _paint(text: Any, color: str, bold: bool = True) -> str:
    attrs = ["bold"] if bold else None
    return colored(str(text), color, attrs=attrs)


def info_color(text: Any) -> str:
    return _paint(text, "cyan", bold=False)


def success_color(text: Any) -> str:
    return _paint(text, "green")


def error_color(text: Any) -> str:
    return _paint(text, "red")


def warning_color(text: Any) -> str:
    return _paint(text, "yellow")


def header_color(text: Any) -> str:
    return _paint(text, "magenta")


def command_color(text: Any) -> str:
    return _paint(text, "blue")


def user_color(text: Any) -> str:
    return _paint(text, "green")


def paused_color(text: Any) -> str:
    return _paint(text, "yellow")


def accent_color(text: Any) -> str:
    return _paint(text, "light_cyan")


def border_color(text: Any) -> str:
    return _paint(text, "dark_grey", bold=False)


class ProgressBar:
    """A byte-counting progress bar that can be paused."""

    def __init__(self, size: int, description: str, *, stream: TextIO | None = None) -> None:
        self.size = size
        self.description = description
        self.current_description = description
        self.is_paused = False
        self.transfer_id = ""
        self._lock = threading.Lock()
        self._bar = tqdm(
            total=size,
            desc=description,
            unit="B",
            unit_scale=True,
            unit_divisor=1024,
            mininterval=0.05,
            file=stream if stream is not None else sys.stdout,
        )

    @property
    def completed(self) -> int:
        """Bytes counted so far."""
        return int(self._bar.n)

    def write(self, data: bytes) -> int:
        """Count ``data`` towards progress unless paused; return its length."""
        with self._lock:
            if self.is_paused:
                return len(data)
            self._bar.update(len(data))
            if self.size and self._bar.n >= self.size:
                self._bar.close()
            return len(data)

    def set_paused(self, paused: bool) -> None:
        """Mark the bar paused or active and show it in the description."""
        with self._lock:
            self.is_paused = paused
            if paused:
                self.current_description = f"{self.description} {paused_color('[PAUSED]')}"
            else:
                self.current_description = self.description
            self._bar.set_description_str(self.current_description)

    def close(self) -> None:
        """Finish the bar's output."""
        with self._lock:
            self._bar.close()

    def __enter__(self) -> "ProgressBar":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def create_progress_bar(size: int, description: str) -> ProgressBar:
    """Create a progress bar for a transfer of ``size`` bytes."""
    return ProgressBar(size, description)


def _emit(lines: Iterable[str]) -> str:
    """Write ``lines`` to standard output, one per line, and return the text."""
    text = "".join(f"{line}\n" for line in lines)
    sys.stdout.write(text)
    sys.stdout.flush()
    return text


def _help_lines() -> list[str]:
    top = "╔════════════════════════════════════════════════════════════════╗"
    bottom = "╚════════════════════════════════════════════════════════════════╝"
    box_top = "┌────────────────────────────────────────────────────────────────┐"
    box_mid = "├────────────────────────────────────────────────────────────────┤"
    box_end = "└────────────────────────────────────────────────────────────────┘"

    sections = [
        (
            "│                      General Commands                          │",
            [
                ("/status", "           Show online users and their status        │"),
                ("/help", "             Display this help message               │"),
                ("exit", "              Disconnect and exit application          │"),
            ],
        ),
        (
            "│                      File Operations                           │",
            [
                ("/lookup <userId>", "    Browse user's shared files               │"),
                ("/sendfile <userId> <path>", " Send a file to specific user              │"),
                ("/sendfolder <userId> <path>", " Send entire folder to user               │"),
                ("/download <userId> <fileName>", " Download file from user's share          │"),
            ],
        ),
        (
            "│                     Transfer Controls                          │",
            [
                ("/transfers", "          Show all active transfers               │"),
                ("/pause <transferId>", "     Pause an active transfer                 │"),
                ("/resume <transferId>", "    Resume a paused transfer                 │"),
            ],
        ),
    ]

    lines = [
        header_color("\n" + top),
        header_color("║                     ItShare Help Guide                        ║"),
        header_color(bottom),
    ]
    for title, commands in sections:
        lines.append(border_color("\n" + box_top))
        lines.append(header_color(title))
        lines.append(border_color(box_mid))
        lines.extend(f"│  {command_color(command)}{description}" for command, description in commands)
        lines.append(border_color(box_end))
    lines.append(border_color("\n" + top))
    lines.append(accent_color("║        Type a message and press Enter to chat with everyone!      ║"))
    lines.append(border_color(bottom + "\n"))
    return lines


def print_help() -> str:
    """Print every available command and return the printed text."""
    return _emit(_help_lines())


_BANNER = r"""
    ____  __  _____ __                    
   /  _/ / /_/ ___// /_  ____ __________ 
   / /  / __/\__ \/ __ \/ __ '/ ___/ _ \
 _/ /  / /_ ___/ / / / / /_/ / /  /  __/
/___/  \__//____/_/ /_/\__,_/_/   \___/ 
                                       
"""


def print_banner() -> str:
    """Print the application banner and return the printed text."""
    rule = "════════════════════════════════════════════════════════"
    return _emit(
        [
            accent_color(_BANNER),
            accent_color(rule),
            header_color("           🚀 Intelligent File Sharing Network 🚀"),
            accent_color(rule + "\n"),
        ]
    )


def print_welcome() -> str:
    """Print a welcome message with usage tips and return the printed text."""
    return _emit(
        [
            success_color("Welcome to ItShare!"),
            info_color("Connected to the network successfully"),
            " ".join([info_color("Type"), command_color("/help"), info_color("for available commands")]),
            info_color("Start chatting or sharing files with other users!\n"),
        ]
    )


def print_separator() -> str:
    """Print a horizontal separator line and return the printed text."""
    return _emit([border_color("─" * 64)])


_STATUS_LABELS = {
    "success": (success_color, "SUCCESS:"),
    "error": (error_color, "ERROR:"),
    "warning": (warning_color, "WARNING:"),
    "info": (info_color, "INFO:"),
}


def print_status(message: str, status_type: str) -> None:
    """Print a timestamped status line labelled by ``status_type``."""
    timestamp = time.strftime("%H:%M:%S")
    label = _STATUS_LABELS.get(status_type)
    if label is None:
        print(f"[{timestamp}] {message}")
    else:
        paint, text = label
        print(f"[{timestamp}] {paint(text)} {message}")