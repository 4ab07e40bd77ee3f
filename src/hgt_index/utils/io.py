import gzip
import logging
import re
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"(\d+)")


def open_text(path: Path) -> IO[str]:
    """Open a plain or gzip-compressed text file for reading."""
    if path.suffix == ".gz":
        return gzip.open(path, "rt", encoding="utf-8")
    return path.open(encoding="utf-8")


def count_lines(path: Path) -> int | None:
    """Count lines for progress bars; None if the file cannot be read."""
    try:
        with open_text(path) as f:
            return sum(1 for _ in f)
    except OSError:
        return None


def natural_sort_key(text: str) -> list[str | int]:
    """Sort key ordering embedded numbers numerically, e.g. g2 before g10."""
    return [int(part) if part.isdigit() else part.lower() for part in _DIGITS.split(text)]


def format_count(value: int) -> str:
    return f"{value:,}"


def percentage(numerator: int, denominator: int) -> str:
    """Format numerator/denominator as a percentage with two decimals."""
    if denominator == 0:
        return "NA"
    return f"{numerator / denominator * 100:.2f}"
