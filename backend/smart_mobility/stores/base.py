"""
Smart Mobility Backend - Storage Interfaces
============================================

What:  Abstract stores through which services reach persistence.
Why:   Services receive their stores as constructor arguments instead of
       reaching for a process-wide ORM client. Tests hand in AsyncMocks or
       SQL stores bound to an in-memory database; production hands in SQL
       stores bound to the request's session.
How:   Concrete implementations inherit from these ABCs (see stores/sql.py).

Conventions every implementation follows:
    - `active` is an explicit parameter on every route accessor:
      True = active only, False = inactive only, None = both.
    - Ordering is chosen with `RouteSortKey`; the implementation maps each
      key to a full, deterministic ORDER BY.
    - Persistence failures surface as `StorageError`, never retried here.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional
from uuid import UUID

from smart_mobility.models.route import FrequentRoute
from smart_mobility.models.user import User


@dataclass(frozen=True)
class GeoPoint:
    """A validated coordinate pair in decimal degrees."""
    latitude: float
    longitude: float


class RouteSortKey(str, Enum):
    """
    Orderings offered by the frequent-routes list, all descending.

    Ties are broken by the next most meaningful column and finally the id,
    so the same data always lists in the same order.
    """

    LAST_USED = "lastUsed"
    TIMES_USED = "timesUsed"
    CREATED_AT = "createdAt"

    @classmethod
    def parse(cls, value: Optional[str]) -> "RouteSortKey":
        """
        Maps a client-supplied key to a sort key.

        Accepts the camelCase values, their snake_case spellings and the
        legacy `recent` alias for creation order. Anything else falls back to
        LAST_USED, the list's default.
        """
        if isinstance(value, cls):
            return value
        if not value:
            return cls.LAST_USED
        return _SORT_ALIASES.get(value.strip(), cls.LAST_USED)


_SORT_ALIASES = {
    "lastUsed": RouteSortKey.LAST_USED,
    "last_used": RouteSortKey.LAST_USED,
    "timesUsed": RouteSortKey.TIMES_USED,
    "times_used": RouteSortKey.TIMES_USED,
    "createdAt": RouteSortKey.CREATED_AT,
    "created_at": RouteSortKey.CREATED_AT,
    "recent": RouteSortKey.CREATED_AT,
}


@dataclass(frozen=True)
class UsageSummary:
    """Aggregate over a user's routes: row count, sum and mean of times_used."""
    count: int
    total: int
    average: float


class RouteStore(ABC):
    """Persistence operations on frequent routes."""

    @abstractmethod
    async def find_matches(
        self,
        user_id: UUID,
        origin: GeoPoint,
        destination: GeoPoint,
        tolerance: float,
        active: Optional[bool] = True,
    ) -> List[FrequentRoute]:
        """
        Routes of `user_id` whose four coordinates each lie within
        `tolerance` of the given points, most recently used first.
        """
        ...

    @abstractmethod
    async def get(
        self, route_id: UUID, user_id: UUID, active: Optional[bool] = True
    ) -> Optional[FrequentRoute]:
        """The route with this id owned by this user, or None."""
        ...

    @abstractmethod
    async def add(self, route: FrequentRoute) -> FrequentRoute:
        """Persists a new route; its id is assigned on return."""
        ...

    @abstractmethod
    async def save(self, route: FrequentRoute) -> FrequentRoute:
        """Writes pending changes of an already persisted route."""
        ...

    @abstractmethod
    async def list_routes(
        self,
        user_id: UUID,
        sort: RouteSortKey = RouteSortKey.LAST_USED,
        limit: Optional[int] = None,
        active: Optional[bool] = True,
    ) -> List[FrequentRoute]:
        ...

    @abstractmethod
    async def page(
        self,
        user_id: UUID,
        offset: int,
        limit: int,
        active: Optional[bool] = None,
    ) -> List[FrequentRoute]:
        """One page of routes ordered by last use, newest first."""
        ...

    @abstractmethod
    async def count(self, user_id: UUID, active: Optional[bool] = None) -> int:
        ...

    @abstractmethod
    async def usage_summary(
        self, user_id: UUID, active: Optional[bool] = True
    ) -> UsageSummary:
        ...

    @abstractmethod
    async def deactivate(self, route_id: UUID, user_id: UUID) -> bool:
        """
        Soft-deletes an ACTIVE route owned by `user_id`.

        Returns False when no such active route exists, including when it
        was already deactivated.
        """
        ...


class UserStore(ABC):
    """Persistence operations on users."""

    @abstractmethod
    async def get(self, user_id: UUID, for_update: bool = False) -> Optional[User]:
        """
        Loads a user by id. With `for_update=True` the row stays locked until
        the surrounding transaction ends.
        """
        ...

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        """Lookup by normalized (stripped, lower-cased) email."""
        ...

    @abstractmethod
    async def get_by_google_id_or_email(
        self, google_id: str, email: Optional[str]
    ) -> Optional[User]:
        ...

    @abstractmethod
    async def add(self, user: User) -> User:
        """Persists a new user; raises ConflictError if the email is taken."""
        ...

    @abstractmethod
    async def save(self, user: User) -> User:
        ...
