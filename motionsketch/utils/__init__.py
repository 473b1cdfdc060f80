"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Config validation (validators)
    - Atomic I/O (fs)
    - Unified logging (logging_config)
    - Id generation (ids)

No module in utils/ may import from upper layers (geometry, modifiers,
serialization, suggestion).

Convenience imports:
    from motionsketch.utils import fs, validators
    from motionsketch.utils.logging_config import setup_logging, get_logger
"""

# Re-export commonly used modules for convenience
from . import fs
from . import ids
from . import logging_config
from . import validators

# Common functions for direct import
from .ids import IdFactory, new_id, sequential_ids
from .logging_config import get_logger, push_context, setup_logging

__all__ = [
    # Modules
    'fs',
    'ids',
    'logging_config',
    'validators',
    # Functions
    'IdFactory',
    'get_logger',
    'new_id',
    'push_context',
    'sequential_ids',
    'setup_logging',
]
