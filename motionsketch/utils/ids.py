"""Id generation for paths, modifiers and suggestions.

Every component that mints ids takes an ``id_factory`` argument instead of
calling uuid at the call site, so tests can supply deterministic ids:

    engine = SuggestionEngine(cfg, CurveFamily.SKETCH, provider,
                              id_factory=sequential_ids("sugg"))

Ids are opaque strings; nothing parses them.
"""

import itertools
import uuid
from typing import Callable

IdFactory = Callable[[], str]


def new_id() -> str:
    """Generate a random RFC 4122 version 4 id.

    Returns
    -------
    str
        Canonical 36-char uuid string, e.g. "3f2b8c1e-...".
    """
    return str(uuid.uuid4())


def sequential_ids(prefix: str = "id", start: int = 1) -> IdFactory:
    """Create a deterministic id factory.

    Parameters
    ----------
    prefix : str
        Id prefix, default "id"
    start : int
        First counter value, default 1

    Returns
    -------
    IdFactory
        Callable yielding "prefix-00001", "prefix-00002", ...

    Examples
    --------
    >>> make_id = sequential_ids("mod")
    >>> make_id(), make_id()
    ('mod-00001', 'mod-00002')
    """
    counter = itertools.count(start)
    return lambda: f"{prefix}-{next(counter):05d}"
