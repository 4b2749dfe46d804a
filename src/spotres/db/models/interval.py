from __future__ import annotations

import sedate

from datetime import datetime
from sqlalchemy import types
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship
from sqlalchemy.schema import ForeignKey
from sqlalchemy.schema import Index

from spotres.db.models.base import ORMBase
from spotres.db.models.timespan import Timespan
from spotres.db.models.timestamp import TimestampMixin


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sedate.types import TzInfoOrName

    from spotres.db.models import Spot, User


class Interval(TimestampMixin, ORMBase):
    """ A reservation of a spot by a user, from start (inclusive) to end
    (exclusive). An end of None means the reservation is open-ended.

    Intervals have no surrogate key, they are identified by spot, start and
    owner. Intervals of the same spot never overlap, this is not enforced by
    the database but by :class:`spotres.db.manager.SpotManager`.

    """

    __tablename__ = 'intervals'

    spot_id: Mapped[str] = mapped_column(
        types.String(255),
        ForeignKey('spots.id', ondelete='CASCADE', onupdate='RESTRICT'),
        primary_key=True
    )

    start: Mapped[datetime] = mapped_column(primary_key=True)

    owner_email: Mapped[str] = mapped_column(
        types.String(255),
        ForeignKey('users.email', ondelete='CASCADE', onupdate='RESTRICT'),
        primary_key=True
    )

    end: Mapped[datetime | None]

    spot: Mapped[Spot] = relationship(back_populates='intervals')

    owner: Mapped[User] = relationship(back_populates='intervals')

    __table_args__ = (
        Index('interval_time_range_ix', 'start', 'end'),
    )

    @property
    def timespan(self) -> Timespan:
        return Timespan(self.start, self.end)

    @property
    def is_infinite(self) -> bool:
        return self.end is None

    def display_start(self, timezone: TzInfoOrName) -> datetime:
        return sedate.to_timezone(self.start, timezone)

    def display_end(self, timezone: TzInfoOrName) -> datetime | None:
        if self.end is None:
            return None

        return sedate.to_timezone(self.end, timezone)

    def __repr__(self) -> str:
        end = self.end.isoformat() if self.end else '...'
        return (
            f'<Interval {self.spot_id} {self.owner_email} '
            f'[{self.start.isoformat()}, {end})>'
        )
