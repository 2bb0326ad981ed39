from __future__ import annotations

import itertools
import uuid
from typing import Callable

IdFactory = Callable[[], str]


def new_id() -> str:
    """Random UUID4 string, the default id source for new nodes and phases."""
    return str(uuid.uuid4())


def counter_ids(prefix: str = "n") -> IdFactory:
    """Deterministic id source: prefix1, prefix2, ..."""
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"
