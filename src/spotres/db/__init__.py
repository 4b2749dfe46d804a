from __future__ import annotations

from spotres.db.manager import Identity, SpotManager
from spotres.db.queries import Queries, SpotStatus


from typing import Any
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from spotres.context.core import Context


def new_manager(
    context: Context | str,
    timezone: str = 'UTC',
    settings: dict[str, Any] | None = None
) -> SpotManager:
    """ Creates a new manager operating on the given context. A context
    given by name is created if it doesn't exist yet.

    The settings are set on the context, e.g. ``{'dsn': '...'}``.

    """
    import spotres

    if isinstance(context, str):
        context = spotres.registry.get_context(context, autocreate=True)

    for name, value in (settings or {}).items():
        context.set_setting(name, value)

    return SpotManager(context, timezone)


__all__ = (
    'Identity',
    'new_manager',
    'Queries',
    'SpotManager',
    'SpotStatus',
)
