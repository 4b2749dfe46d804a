from __future__ import annotations


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import datetime


class Timespan(NamedTuple):
    """ A half-open range, an end of None is open-ended. """

    start: datetime
    end: datetime | None

    @property
    def is_infinite(self) -> bool:
        return self.end is None

    def contains(self, timestamp: datetime) -> bool:
        if timestamp < self.start:
            return False

        return self.end is None or timestamp < self.end
