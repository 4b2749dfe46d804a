from __future__ import annotations

from sqlalchemy import types
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship

from spotres.db.models.base import ORMBase
from spotres.db.models.timestamp import TimestampMixin
from spotres.modules import roles


from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from spotres.db.models import Interval


class User(TimestampMixin, ORMBase):
    """ A directory entry, keyed by email. The first user ever created is
    the owner, everybody else starts out as plain user.

    """

    __tablename__ = 'users'

    email: Mapped[str] = mapped_column(
        types.String(255),
        primary_key=True
    )

    name: Mapped[str] = mapped_column(types.String(255))

    role: Mapped[Literal['user', 'admin', 'owner']] = mapped_column(
        types.Enum(*roles.ROLES, name='user_role'),
        default=roles.USER
    )

    intervals: Mapped[list[Interval]] = relationship(
        back_populates='owner',
        cascade='all, delete-orphan',
        order_by='Interval.start'
    )

    @property
    def is_privileged(self) -> bool:
        return roles.is_privileged(self.role)

    @property
    def title(self) -> str:
        return self.name or self.email

    def __repr__(self) -> str:
        return f'<User {self.email} ({self.role})>'
