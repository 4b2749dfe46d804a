""" Decides what happens to an existing interval when a time range is
released on top of it.

The checks are evaluated in a fixed order and the first match wins. The
order matters at the boundaries (e.g. an open-ended interval starting
before the released range is always split, never trimmed).

"""
from __future__ import annotations

import enum

from spotres.db.models.timespan import Timespan


from typing import NamedTuple
from typing import Protocol
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import datetime


class _Span(Protocol):
    @property
    def start(self) -> datetime: ...
    @property
    def end(self) -> datetime | None: ...


class Disposition(enum.Enum):
    #: the existing interval lies within the range, it is deleted
    FULLY_CONTAINED = 'fully-contained'

    #: the existing interval reaches beyond both ends of the range, it is
    #: split into a head and a tail
    SURROUNDS = 'surrounds'

    #: the range covers the start of the existing interval
    OVERLAPS_START = 'overlaps-start'

    #: the range covers the end of the (finite) existing interval
    OVERLAPS_END = 'overlaps-end'

    #: an open-ended interval starts within the range
    INFINITE_STARTS_WITHIN = 'infinite-starts-within'


class Resolution(NamedTuple):
    disposition: Disposition

    #: the bounds of the existing interval before the release
    original: Timespan

    #: the bounds the existing interval keeps, None if it is deleted
    keep: Timespan | None

    #: the bounds of the interval split off the existing one, if any
    split: Timespan | None

    @property
    def deleted(self) -> bool:
        return self.keep is None


def classify(
    existing: _Span,
    start: datetime,
    end: datetime
) -> Disposition | None:
    """ Returns the disposition of the existing interval with regards to the
    released range [start, end), or None if the two do not overlap.

    """
    s, e = existing.start, existing.end

    if s >= start and e is not None and e <= end:
        return Disposition.FULLY_CONTAINED

    if s < start and (e is None or e > end):
        return Disposition.SURROUNDS

    if s < end and start <= s:
        return Disposition.OVERLAPS_START

    if e is not None and e > start and end >= e and s < start:
        return Disposition.OVERLAPS_END

    # unreachable with the guards above, kept so the order stays explicit
    if e is None and s >= start and s < end:
        return Disposition.INFINITE_STARTS_WITHIN

    return None


def resolve(
    existing: _Span,
    start: datetime,
    end: datetime
) -> Resolution | None:
    """ Computes the mutation releasing [start, end) causes on the existing
    interval. Nothing is written, see
    :meth:`spotres.db.manager.SpotManager.release` for that.

    """
    disposition = classify(existing, start, end)

    if disposition is None:
        return None

    original = Timespan(existing.start, existing.end)
    keep: Timespan | None
    split = None

    if disposition is Disposition.FULLY_CONTAINED:
        keep = None
    elif disposition is Disposition.SURROUNDS:
        keep = Timespan(existing.start, start)
        split = Timespan(end, existing.end)
    elif disposition is Disposition.OVERLAPS_END:
        keep = Timespan(existing.start, start)
    else:
        keep = Timespan(end, existing.end)

    return Resolution(disposition, original, keep, split)
