from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum
from typing import Any

from ._sql import CursorReference
from ._types import is_refcursor
from ._window import Read, Steps

logger = logging.getLogger("refcursor_reader")


class Behavior(str, Enum):
    """What the caller intends to read from a result."""

    DEFAULT = "default"
    SINGLE_RESULT = "single_result"
    SINGLE_ROW = "single_row"

    @property
    def early_quit(self) -> bool:
        return self in (Behavior.SINGLE_RESULT, Behavior.SINGLE_ROW)


def cursor_columns(description: Sequence[Sequence[Any]] | None) -> list[int]:
    if description is None:
        return []
    return [i for i, column in enumerate(description) if is_refcursor(column[1])]


def can_dereference(result: Any) -> bool:
    """True iff ``result`` has at least one refcursor column."""
    return bool(cursor_columns(result.description))


def capture_cursors(
    result: Any,
    behavior: Behavior,
) -> Steps[tuple[CursorReference, ...]]:
    """Collect the cursor handles of ``result``, row by row.

    Supports 1x1, 1xN, Nx1 and NxM shapes; non-cursor values in the
    same rows are ignored. Releasing ``result`` is left to the caller.
    """
    columns = cursor_columns(result.description)
    captured: list[CursorReference] = []
    while (row := (yield Read(result))) is not None:
        for i in columns:
            if row[i] is None:
                continue
            captured.append(CursorReference.capture(row[i]))
            if behavior.early_quit:
                break
        if behavior.early_quit:
            break
    logger.debug("captured %d cursor(s)", len(captured))
    return tuple(captured)
