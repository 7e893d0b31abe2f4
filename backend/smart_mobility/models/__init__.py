"""ORM models. Importing this package registers every table on `Base.metadata`."""

from smart_mobility.models.route import FrequentRoute
from smart_mobility.models.user import User

__all__ = ["FrequentRoute", "User"]
