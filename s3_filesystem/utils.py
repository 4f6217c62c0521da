from __future__ import annotations
"""Formatting helpers for log lines and command output."""

SIZE_SUFFIXES = ("B", "KB", "MB", "GB", "TB")


def format_size(size: int | float | None) -> str:
    if size is None:
        return "-"
    value = float(max(size, 0))
    for suffix in SIZE_SUFFIXES:
        if value < 1024 or suffix == SIZE_SUFFIXES[-1]:
            return f"{value:.1f} {suffix}" if suffix != "B" else f"{int(value)} {suffix}"
        value /= 1024
    return f"{size} B"


def format_throughput(bytes_per_second: float) -> str:
    return f"{format_size(bytes_per_second)}/s"
