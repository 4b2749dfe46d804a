from spotres.db.models.base import ORMBase
from spotres.db.models.spot import Spot
from spotres.db.models.user import User
from spotres.db.models.interval import Interval
from spotres.db.models.timespan import Timespan


__all__ = ('ORMBase', 'Spot', 'User', 'Interval', 'Timespan')
