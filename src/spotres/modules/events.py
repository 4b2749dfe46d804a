""" Events are called by the :class:`spotres.db.manager.SpotManager` whenever
something interesting occurs.

The implementation is very simple:

To add an event::

    from spotres.modules import events

    def on_interval_assigned(context, interval):
        pass

    events.on_interval_assigned.append(on_interval_assigned)

To remove the same event::

    events.on_interval_assigned.remove(on_interval_assigned)

Events are called in the order they were added. They are called after the
changes have been flushed, but before the transaction is committed. An
exception raised by an event handler rolls back the whole operation.
"""
from __future__ import annotations


from typing import overload
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Sequence
    from typing_extensions import ParamSpec

    from spotres.context.core import Context
    from spotres.db.models import Interval, Spot, User
    from spotres.modules.resolver import Resolution

    _P = ParamSpec('_P')


class Event(list['Callable[_P, object]']):
    """Event subscription. By http://stackoverflow.com/a/2022629

    A list of callable objects. Calling an instance of this will cause a
    call to each item in the list in ascending order by index.

    """
    @overload
    def __init__(self, f: type[Callable[_P, object]]) -> None: ...
    @overload
    def __init__(self) -> None: ...

    def __init__(self, f: object = None) -> None:
        return

    def __call__(self, *args: _P.args, **kwargs: _P.kwargs) -> None:
        for f in self:
            f(*args, **kwargs)


on_spot_added: Event[Context, Spot] = Event()
""" Called when a spot is added, with the following arguments:

    :context:
        The :class:`spotres.context.core.Context` used when adding the spot.

    :spot:
        The :class:`spotres.db.models.Spot` that was added.

"""

on_spot_removed: Event[Context, Spot] = Event()
""" Called when a spot is removed (together with all its intervals), with
the following arguments:

    :context:
        The :class:`spotres.context.core.Context` used when removing the spot.

    :spot:
        The :class:`spotres.db.models.Spot` being removed.

"""

on_user_added: Event[Context, User] = Event()
""" Called when a user is added to the directory, with the following
arguments:

    :context:
        The :class:`spotres.context.core.Context` used when adding the user.

    :user:
        The :class:`spotres.db.models.User` that was added.

"""

on_user_removed: Event[Context, User] = Event()
""" Called when a user is removed (together with all their intervals), with
the following arguments:

    :context:
        The :class:`spotres.context.core.Context` used when removing the user.

    :user:
        The :class:`spotres.db.models.User` being removed.

"""

on_interval_assigned: Event[Context, Interval] = Event()
""" Called when an interval is assigned, finite or open-ended, with the
following arguments:

    :context:
        The :class:`spotres.context.core.Context` used when assigning.

    :interval:
        The newly created :class:`spotres.db.models.Interval`.

"""

on_intervals_released: Event[Context, str, Sequence[Resolution]] = Event()
""" Called when a release request changed at least one interval, with the
following arguments:

    :context:
        The :class:`spotres.context.core.Context` used when releasing.

    :requesting_email:
        The email of the user who requested the release.

    :resolutions:
        The list of :class:`spotres.modules.resolver.Resolution` applied to
        the overlapping intervals, in order of their start.

"""
