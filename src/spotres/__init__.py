from __future__ import annotations

from spotres.context.registry import create_default_registry
from spotres.db import new_manager, Identity

registry = create_default_registry()

__version__ = '0.1.0'
__all__ = (
    'Identity',
    'new_manager',
    'registry',
)
