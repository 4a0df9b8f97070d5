"""
Reference numbers -- human-readable request identifiers.

Format: ``{prefix}-YYYYMMDD-NNNN`` (e.g. ``REQ-20240115-0007``), the counter
zero-padded to ``width`` digits and starting at 1 each day.

``generate_reference_number`` is pure: today's date and a uniqueness probe
go in, the first free string comes out.  The probe is the caller's window
onto storage.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import date

from store_kernel.exceptions import ReferenceNumberExhaustedError

DEFAULT_PREFIX = "REQ"
DEFAULT_WIDTH = 4
DEFAULT_MAX_ATTEMPTS = 100


def format_reference_number(
    day: date, counter: int, *, prefix: str = DEFAULT_PREFIX, width: int = DEFAULT_WIDTH,
) -> str:
    return f"{prefix}-{day:%Y%m%d}-{counter:0{width}d}"


def reference_number_pattern(
    prefix: str = DEFAULT_PREFIX, width: int = DEFAULT_WIDTH,
) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(prefix)}-\d{{8}}-\d{{{width}}}$")


def generate_reference_number(
    today: date,
    is_taken: Callable[[str], bool],
    *,
    start: int = 1,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    prefix: str = DEFAULT_PREFIX,
    width: int = DEFAULT_WIDTH,
) -> str:
    """
    Return the first reference number for ``today`` that ``is_taken`` rejects.

    Counters are tried from ``start`` upward.

    Raises:
        ValueError: start < 1 or max_attempts < 1.
        ReferenceNumberExhaustedError: ``max_attempts`` probes all collided,
            or the counter ran past the ``width``-digit space.
    """
    if start < 1:
        raise ValueError(f"start must be >= 1, got {start}")
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    ceiling = 10 ** width - 1
    counter = start
    attempts = 0
    while attempts < max_attempts and counter <= ceiling:
        candidate = format_reference_number(today, counter, prefix=prefix, width=width)
        attempts += 1
        if not is_taken(candidate):
            return candidate
        counter += 1

    raise ReferenceNumberExhaustedError(f"{today:%Y%m%d}", attempts)


def counter_of(reference_number: str) -> int:
    """The trailing counter of a reference number."""
    return int(reference_number.rsplit("-", 1)[1])
