from __future__ import annotations

import logging

from datetime import datetime
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload
from sqlalchemy.sql import or_

from spotres.context.core import ContextServicesMixin
from spotres.db.models import Interval, Spot
from spotres.modules import errors


from typing import NamedTuple
from typing import TypeVar
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterable
    from sqlalchemy.orm import Query

    from spotres.context.core import Context

_T = TypeVar('_T')


log = logging.getLogger('spotres')


class SpotStatus(NamedTuple):
    """ Who occupies a spot at a given time. The occupant fields are None
    if the spot is free.

    """
    spot_id: str
    user_email: str | None
    user_name: str | None
    start: datetime | None
    end: datetime | None

    @property
    def is_free(self) -> bool:
        return self.user_email is None


class Queries(ContextServicesMixin):
    """ The interval store. Reads and writes intervals, one statement at a
    time. It does not know about the non-overlap rule, callers have to
    ensure it (see :class:`spotres.db.manager.SpotManager`).

    Dates passed to the queries are expected to be timezone-aware.

    """

    def __init__(self, context: Context):
        self.context = context

    @staticmethod
    def overlapping(
        query: Query[_T],
        start: datetime,
        end: datetime | None
    ) -> Query[_T]:
        """ Takes an interval query and limits it to the intervals
        overlapping with [start, end). An end of None means the range
        is open-ended.

        """
        query = query.filter(or_(
            Interval.end.is_(None),
            Interval.end > start
        ))

        if end is not None:
            query = query.filter(Interval.start < end)

        return query

    @staticmethod
    def active_at(query: Query[_T], timestamp: datetime) -> Query[_T]:
        """ Takes an interval query and limits it to the intervals
        running at the given time.

        """
        return query.filter(
            Interval.start <= timestamp,
            or_(Interval.end.is_(None), Interval.end > timestamp)
        )

    def overlapping_intervals(
        self,
        spot_id: str,
        start: datetime,
        end: datetime | None
    ) -> list[Interval]:
        """ Returns the intervals of the spot overlapping [start, end),
        ordered by start.

        """
        query = self.session.query(Interval)
        query = query.filter(Interval.spot_id == spot_id)
        query = self.overlapping(query, start, end)
        query = query.order_by(Interval.start, Interval.owner_email)

        intervals = query.all()
        log.debug(
            f'{len(intervals)} intervals of {spot_id} overlap '
            f'[{start}, {end or "..."})'
        )

        return intervals

    def interval_by_key(
        self,
        spot_id: str,
        start: datetime,
        owner_email: str
    ) -> Interval | None:
        return self.session.get(Interval, (spot_id, start, owner_email))

    def insert_interval(
        self,
        spot_id: str,
        owner_email: str,
        start: datetime,
        end: datetime | None
    ) -> Interval:
        """ Adds a new interval. Raises a
        :class:`~spotres.modules.errors.ConflictError` if the spot already
        has an interval of the same owner starting at the same time.

        """
        existing = self.interval_by_key(spot_id, start, owner_email)

        if existing is not None:
            raise errors.ConflictError(
                f'{owner_email} already has an interval on {spot_id} '
                f'starting at {start}',
                existing=[existing]
            )

        interval = Interval(
            spot_id=spot_id,
            owner_email=owner_email,
            start=start,
            end=end
        )

        self.session.add(interval)

        try:
            self.session.flush()
        except IntegrityError as e:
            raise errors.ConflictError(
                f'Could not write the interval on {spot_id}: {e.orig}'
            ) from e

        return interval

    def update_interval(
        self,
        interval: Interval,
        start: datetime,
        end: datetime | None
    ) -> Interval:
        """ Moves the boundaries of an existing interval. The start is part
        of the primary key, the row is updated in place nonetheless.

        """
        interval.start = start
        interval.end = end

        self.session.flush()

        return interval

    def delete_interval(self, interval: Interval) -> None:
        self.session.delete(interval)
        self.session.flush()

    def active_intervals(self, timestamp: datetime) -> Query[Interval]:
        """ Returns the intervals of all spots running at the given time,
        with their owners loaded.

        """
        query = self.session.query(Interval)
        query = self.active_at(query, timestamp)
        query = query.options(joinedload(Interval.owner))

        return query

    @staticmethod
    def status_priority(interval: Interval) -> tuple[bool, datetime]:
        # finite intervals take precedence over open-ended ones, the latest
        # start wins among equals
        return interval.end is not None, interval.start

    @classmethod
    def current_intervals(
        cls,
        intervals: Iterable[Interval]
    ) -> dict[str, Interval]:
        """ Picks a single interval per spot out of the given active
        intervals.

        """
        current: dict[str, Interval] = {}

        for interval in intervals:
            other = current.get(interval.spot_id)

            if other is None or (
                cls.status_priority(interval) > cls.status_priority(other)
            ):
                current[interval.spot_id] = interval

        return current

    def spot_status(self, timestamp: datetime) -> list[SpotStatus]:
        """ Returns the status of every spot at the given time, ordered by
        the spot id.

        """
        current = self.current_intervals(self.active_intervals(timestamp))
        spots = self.session.query(Spot.id).order_by(Spot.id)

        result = []

        for spot_id, in spots:
            interval = current.get(spot_id)

            if interval is None:
                result.append(SpotStatus(spot_id, None, None, None, None))
            else:
                result.append(SpotStatus(
                    spot_id,
                    interval.owner_email,
                    interval.owner.name,
                    interval.start,
                    interval.end
                ))

        log.debug(f'Fetched the status of {len(result)} spots at {timestamp}')

        return result
