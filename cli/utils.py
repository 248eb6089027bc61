"""Utility functions for CLI progress output."""

import sys
from typing import Dict, TextIO, Tuple

from cli.constants import GREEN, PROGRESS_STEP_PERCENT, RED, RED_ORANGE, RESET
from uploader.types import FileUploadSnapshot, UploadPhase


class ProgressPrinter:
    """Writes one line per phase change and per progress step of each file."""

    def __init__(self, out: TextIO = sys.stdout, step_percent: int = PROGRESS_STEP_PERCENT):
        """
        Initialize the progress printer.

        Args:
            out: Stream to write to
            step_percent: Minimum progress increase between two progress lines
        """
        self.out = out
        self.step_percent = step_percent
        self._last: Dict[str, Tuple[UploadPhase, int]] = {}

    def update(self, snapshot: FileUploadSnapshot) -> None:
        """Observer callback for the upload queue."""
        step = int(snapshot.overall_progress // self.step_percent)
        previous = self._last.get(snapshot.file_id)
        if previous is not None:
            phase, last_step = previous
            if phase == snapshot.phase and (snapshot.phase != UploadPhase.UPLOADING or step <= last_step):
                return
        self._last[snapshot.file_id] = (snapshot.phase, step)
        self.out.write(format_snapshot(snapshot) + '\n')
        self.out.flush()


def format_snapshot(snapshot: FileUploadSnapshot) -> str:
    """
    Render a snapshot as a single status line.

    Args:
        snapshot: File snapshot

    Returns:
        Line such as "video.mp4: uploading 40.0% (4.00 MiB, 1.50 MiB/s)"
    """
    phase = snapshot.phase
    if phase == UploadPhase.UPLOADING:
        return (
            f"{snapshot.name}: uploading {GREEN}{snapshot.overall_progress:.1f}%{RESET} "
            f"({format_file_size(snapshot.uploaded_bytes)}, {format_speed(snapshot.speed)})"
        )
    if phase == UploadPhase.SUCCEEDED:
        how = "already on store" if snapshot.instant else f"{len(snapshot.chunks)} chunk(s)"
        return f"{snapshot.name}: {GREEN}done{RESET} ({format_file_size(snapshot.size)}, {how})"
    if phase == UploadPhase.FAILED:
        return f"{snapshot.name}: {RED}failed{RESET} - {snapshot.error}"
    if phase == UploadPhase.CANCELLED:
        return f"{snapshot.name}: {RED_ORANGE}cancelled{RESET}"
    return f"{snapshot.name}: {phase.value}"


def format_speed(bytes_per_second: float) -> str:
    """Format a transfer rate, e.g. "1.50 MiB/s"."""
    return f"{format_file_size(int(bytes_per_second))}/s"


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"
