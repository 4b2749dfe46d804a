from __future__ import annotations

import sedate

from datetime import datetime
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column


class TimestampMixin:
    """ Mixin providing created/modified timestamps for all records.

    The modified column is deferred, it's there for forensics. The created
    column is used to order the user directory.

    """

    created: Mapped[datetime] = mapped_column(default=sedate.utcnow)

    modified: Mapped[datetime | None] = mapped_column(
        onupdate=sedate.utcnow,
        deferred=True
    )
