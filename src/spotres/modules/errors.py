from __future__ import annotations

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import datetime
    from spotres.db.models import Interval


class SpotresError(Exception):
    pass


class ContextAlreadyExists(SpotresError):
    pass


class UnknownContext(SpotresError):
    pass


class ContextIsLocked(SpotresError):
    pass


class UnknownService(SpotresError):
    pass


class InvalidEmailAddress(SpotresError):
    pass


class InvalidRole(SpotresError):
    pass


class InvalidRangeError(SpotresError):

    __slots__ = ('start', 'end')

    def __init__(self, start: datetime, end: datetime):
        super().__init__(f'{start} is not before {end}')
        self.start = start
        self.end = end


class ConflictError(SpotresError):
    """ Raised when an interval may not be written, either because the
    requested window is already reserved or because an interval with the
    same spot, start and owner exists.

    """

    __slots__ = ('existing', )

    def __init__(
        self,
        message: str,
        existing: list[Interval] | None = None
    ):
        super().__init__(message)
        self.existing = existing or []


class AssignmentSearchExhausted(ConflictError):
    pass


class AuthorizationError(SpotresError):
    pass


class NotFoundError(SpotresError):
    pass


class UnknownSpot(NotFoundError):
    pass


class UnknownUser(NotFoundError):
    pass


class StorageError(SpotresError):
    """ Wraps failures of the database (lost connections, aborted
    serializable transactions). Nothing was committed when this is raised.

    """
