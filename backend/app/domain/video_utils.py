"""Video session domain utilities shared across service, routes, and schemas."""

from __future__ import annotations

from typing import Tuple

from ..core.config import settings


def compute_join_window(start_ms: int) -> Tuple[int, int]:
    """Return the ``[opens, closes]`` instants during which participants may join.

    The window opens ``join_window_early_minutes`` before the session starts and
    closes ``join_window_late_minutes`` after it.
    """
    opens = start_ms - settings.join_window_early_minutes * 60_000
    closes = start_ms + settings.join_window_late_minutes * 60_000
    return opens, closes


def is_within_join_window(start_ms: int, now_ms: int) -> bool:
    opens, closes = compute_join_window(start_ms)
    return opens <= now_ms <= closes
