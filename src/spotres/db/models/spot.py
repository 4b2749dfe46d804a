from __future__ import annotations

from sqlalchemy import types
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship

from spotres.db.models.base import ORMBase
from spotres.db.models.timestamp import TimestampMixin


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from spotres.db.models import Interval


class Spot(TimestampMixin, ORMBase):
    """ A bookable resource, identified by a string (e.g. 'A1'). """

    __tablename__ = 'spots'

    id: Mapped[str] = mapped_column(
        types.String(255),
        primary_key=True
    )

    # intervals are removed together with the spot, the foreign key cascades
    # too but the orm doesn't rely on the database for it
    intervals: Mapped[list[Interval]] = relationship(
        back_populates='spot',
        cascade='all, delete-orphan',
        order_by='Interval.start'
    )

    def __repr__(self) -> str:
        return f'<Spot {self.id}>'
