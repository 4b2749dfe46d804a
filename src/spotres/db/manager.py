from __future__ import annotations

import logging
import sedate

from spotres.context.core import ContextServicesMixin
from spotres.context.session import serialized
from spotres.db.models import ORMBase, Interval, Spot, User
from spotres.db.queries import Queries
from spotres.modules import errors
from spotres.modules import events
from spotres.modules import resolver
from spotres.modules import roles


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import datetime
    from sqlalchemy.orm import Query
    from typing_extensions import Self

    from spotres.context.core import Context
    from spotres.db.queries import SpotStatus
    from spotres.modules.resolver import Resolution


log = logging.getLogger('spotres')


class Identity(NamedTuple):
    """ An authenticated identity, as handed over by whatever does the
    authentication (spotres doesn't).

    """
    email: str
    name: str


class SpotManager(ContextServicesMixin):
    """ The SpotManager assigns and releases spots. It is the main part of
    the API.

    Each public method that changes something runs in its own
    serializable transaction, see :func:`spotres.context.session.serialized`.
    Either all of its changes are committed or none are.

    """

    def __init__(self, context: Context, timezone: str = 'UTC'):
        """ Initializes a new SpotManager instance.

        :context:
            The :class:`spotres.context.core.Context` this manager should
            operate on. Acquire a context by using
            :func:`spotres.context.registry.Registry.register_context`.

        :timezone:
            Dates passed to the manager that are not timezone-aware are
            assumed to be of this timezone. Dates returned by the manager
            are always in UTC.

        """
        assert isinstance(timezone, str)

        self.context = context
        self.queries = Queries(context)
        self.timezone = timezone

    def clone(self) -> Self:
        return self.__class__(self.context, self.timezone)

    @serialized
    def setup_database(self) -> None:
        """ Creates the tables and indices required for spotres. This needs
        to be called once per database, usually when the service starts.
        Multiple invocations won't hurt.

        """
        ORMBase.metadata.create_all(self.session.bind)

    def extinguish_records(self) -> None:
        """ WARNING:
        Completely removes all spots, users and intervals of the database
        this manager is connected to. Meant for tests.

        """
        self.session.query(Interval).delete()
        self.session.query(User).delete()
        self.session.query(Spot).delete()

    def _prepare_date(self, date: datetime) -> datetime:
        return sedate.standardize_date(date, self.timezone)

    def _prepare_range(
        self,
        start: datetime,
        end: datetime
    ) -> tuple[datetime, datetime]:

        start = self._prepare_date(start)
        end = self._prepare_date(end)

        if start >= end:
            raise errors.InvalidRangeError(start, end)

        return start, end

    # user directory

    def user_by_email(self, email: str) -> User | None:
        return self.session.get(User, email)

    def require_user(self, email: str) -> User:
        user = self.user_by_email(email)

        if user is None:
            raise errors.UnknownUser(email)

        return user

    def resolve_role(self, email: str) -> str:
        """ Returns the role of the given user, raises
        :class:`~spotres.modules.errors.UnknownUser` if there's no such user.

        """
        return self.require_user(email).role

    def has_users(self) -> bool:
        query = self.session.query(User)
        return bool(self.session.query(query.exists()).scalar())

    def users(self) -> Query[User]:
        """ All users, newest first. """
        return self.session.query(User).order_by(
            User.created.desc(), User.email
        )

    @serialized
    def add_user(self, email: str, name: str, role: str = 'user') -> User:
        if not self.validate_email(email):
            raise errors.InvalidEmailAddress(email)

        role = roles.assert_valid_role(role)

        if self.user_by_email(email) is not None:
            raise errors.ConflictError(f'{email} exists already')

        user = User(email=email, name=name, role=role)
        self.session.add(user)
        self.session.flush()

        log.info(f'Added user {email} as {role}')
        events.on_user_added(self.context, user)

        return user

    @serialized
    def ensure_user(self, email: str, name: str) -> User:
        """ Returns the user with the given email, creating it if it doesn't
        exist yet. The very first user becomes the owner.

        """
        user = self.user_by_email(email)

        if user is not None:
            return user

        role = roles.USER if self.has_users() else roles.OWNER
        return self.add_user(email, name, role)

    def identify(self, identity: Identity) -> User:
        """ Maps an authenticated identity to its directory entry, see
        :meth:`ensure_user`.

        """
        return self.ensure_user(identity.email, identity.name)

    @serialized
    def change_role(self, acting_email: str, email: str, role: str) -> User:
        """ Gives the user a new role. Only admins and owners may do that,
        and nobody can become or stop being the owner.

        """
        roles.assert_privileged(self.resolve_role(acting_email))
        role = roles.assert_valid_role(role)

        user = self.require_user(email)

        if roles.OWNER in (role, user.role):
            raise errors.AuthorizationError('The owner role cannot change')

        user.role = role
        self.session.flush()

        log.info(f'{acting_email} made {email} {role}')

        return user

    @serialized
    def remove_user(self, acting_email: str, email: str) -> None:
        """ Removes the user and all their intervals. Users may remove
        themselves, admins and owners may remove anyone.

        """
        if acting_email != email:
            roles.assert_privileged(self.resolve_role(acting_email))

        user = self.require_user(email)

        events.on_user_removed(self.context, user)

        self.session.delete(user)
        self.session.flush()

        log.info(f'{acting_email} removed user {email}')

    # spots

    def spot_by_id(self, spot_id: str) -> Spot | None:
        return self.session.get(Spot, spot_id)

    def require_spot(self, spot_id: str) -> Spot:
        spot = self.spot_by_id(spot_id)

        if spot is None:
            raise errors.UnknownSpot(spot_id)

        return spot

    def spots(self) -> Query[Spot]:
        return self.session.query(Spot).order_by(Spot.id)

    @serialized
    def add_spot(self, acting_email: str, spot_id: str) -> Spot:
        roles.assert_privileged(self.resolve_role(acting_email))

        assert spot_id, 'A spot needs an id'

        if self.spot_by_id(spot_id) is not None:
            raise errors.ConflictError(f'Spot {spot_id} exists already')

        spot = Spot(id=spot_id)
        self.session.add(spot)
        self.session.flush()

        log.info(f'{acting_email} added spot {spot_id}')
        events.on_spot_added(self.context, spot)

        return spot

    @serialized
    def remove_spot(self, acting_email: str, spot_id: str) -> None:
        """ Removes the spot and all its intervals. """

        roles.assert_privileged(self.resolve_role(acting_email))

        spot = self.require_spot(spot_id)

        events.on_spot_removed(self.context, spot)

        self.session.delete(spot)
        self.session.flush()

        log.info(f'{acting_email} removed spot {spot_id}')

    # intervals

    def intervals(
        self,
        spot_id: str | None = None,
        owner_email: str | None = None
    ) -> Query[Interval]:
        """ Returns the intervals, optionally limited to a spot and/or an
        owner, ordered by spot and start.

        """
        query = self.session.query(Interval)

        if spot_id is not None:
            query = query.filter(Interval.spot_id == spot_id)

        if owner_email is not None:
            query = query.filter(Interval.owner_email == owner_email)

        return query.order_by(Interval.spot_id, Interval.start)

    def spot_status(
        self,
        timestamp: datetime | None = None
    ) -> list[SpotStatus]:
        """ Returns who occupies which spot at the given time (now by
        default). Free spots are included.

        """
        if timestamp is None:
            timestamp = sedate.utcnow()
        else:
            timestamp = self._prepare_date(timestamp)

        return self.queries.spot_status(timestamp)

    @serialized
    def assign(
        self,
        owner_email: str,
        spot_id: str,
        start: datetime,
        end: datetime
    ) -> Interval:
        """ Reserves the spot for the owner from start until end.

        Fails with a :class:`~spotres.modules.errors.ConflictError` if the
        spot is reserved during any part of that time, existing intervals
        are never touched.

        """
        start, end = self._prepare_range(start, end)

        self.require_spot(spot_id)
        self.require_user(owner_email)

        overlapping = self.queries.overlapping_intervals(spot_id, start, end)

        if overlapping:
            log.warning(
                f'{owner_email} cannot reserve {spot_id} from {start} to '
                f'{end}, {len(overlapping)} intervals are in the way'
            )
            raise errors.ConflictError(
                'Spot is already reserved during the requested time period',
                existing=overlapping
            )

        interval = self.queries.insert_interval(
            spot_id, owner_email, start, end
        )

        log.info(f'Assigned {spot_id} to {owner_email} [{start}, {end})')
        events.on_interval_assigned(self.context, interval)

        return interval

    @serialized
    def assign_infinite(
        self,
        owner_email: str,
        spot_id: str,
        start: datetime
    ) -> Interval:
        """ Reserves the spot for the owner from start on, without end.

        Finite intervals are never touched. If there are any from start on,
        the new interval starts once the last of them ends. An open-ended
        interval of someone else is cut off at the start of the new one.

        The returned interval may therefore start later than requested.

        """
        start = self._prepare_date(start)

        self.require_spot(spot_id)
        self.require_user(owner_email)

        cursor = start

        for _ in range(self.max_assignment_rounds):
            overlapping = self.queries.overlapping_intervals(
                spot_id, cursor, None
            )

            ends = [i.end for i in overlapping if i.end is not None]

            if not ends:
                break

            # every overlapping interval ends after the cursor, so this
            # always moves forward
            cursor = max(ends)
        else:
            raise errors.AssignmentSearchExhausted(
                f'Gave up finding a start for {owner_email} on {spot_id} '
                f'after {self.max_assignment_rounds} rounds'
            )

        for displaced in overlapping:
            if displaced.start < cursor:
                log.info(f'Cutting off {displaced} at {cursor}')
                self.queries.update_interval(
                    displaced, displaced.start, cursor
                )
            else:
                # the displaced interval would be empty after cutting it off
                log.info(f'Removing {displaced}, it starts after {cursor}')
                self.queries.delete_interval(displaced)

        interval = self.queries.insert_interval(
            spot_id, owner_email, cursor, None
        )

        log.info(f'Assigned {spot_id} to {owner_email} [{cursor}, ...)')
        events.on_interval_assigned(self.context, interval)

        return interval

    @serialized
    def release(
        self,
        requesting_email: str,
        spot_id: str,
        start: datetime,
        end: datetime
    ) -> list[Resolution]:
        """ Frees the spot from start until end.

        Every interval overlapping that range is deleted, shortened or split
        in two, according to :func:`spotres.modules.resolver.resolve`.
        Open-ended intervals are never deleted.

        Plain users may only release their own intervals, if the range
        covers anybody else's interval nothing is released at all.

        Returns the applied resolutions, which is an empty list if the spot
        was free already.

        """
        start, end = self._prepare_range(start, end)

        overlapping = self.queries.overlapping_intervals(spot_id, start, end)
        role = self.resolve_role(requesting_email)

        owners = {i.owner_email for i in overlapping}

        if not roles.may_release(role, requesting_email, owners):
            log.warning(
                f'{requesting_email} may not release {spot_id} from {start} '
                f'to {end}, it is reserved by {", ".join(sorted(owners))}'
            )
            raise errors.AuthorizationError(
                'You can only release your own reservations'
            )

        resolutions = []

        for interval in overlapping:
            resolution = resolver.resolve(interval, start, end)

            if resolution is None:
                continue

            self.apply_resolution(interval, resolution)
            resolutions.append(resolution)

        if resolutions:
            log.info(
                f'{requesting_email} released {spot_id} [{start}, {end}), '
                f'{len(resolutions)} intervals changed'
            )
            events.on_intervals_released(
                self.context, requesting_email, resolutions
            )

        return resolutions

    def apply_resolution(
        self,
        interval: Interval,
        resolution: Resolution
    ) -> None:
        """ Writes a single resolution to the store. Not serialized on its
        own, see :meth:`release`.

        """
        spot_id, owner_email = interval.spot_id, interval.owner_email

        if resolution.keep is None:
            self.queries.delete_interval(interval)
        else:
            self.queries.update_interval(interval, *resolution.keep)

        if resolution.split is not None:
            self.queries.insert_interval(
                spot_id, owner_email, *resolution.split
            )
