"""
Smart Mobility Backend - SQLAlchemy Stores
===========================================

What:  RouteStore / UserStore implementations over an async SQLAlchemy session.
Who:   Built per request by smart_mobility.dependencies around the session
       from `get_db_session`; built directly by tests around an in-memory
       SQLite session.
When:  Every read and write of routes and users.

Transactions:
    Stores never commit. They flush so ids and counters are visible inside
    the request's transaction; `get_db_session` commits or rolls back once
    at the end of the request.

Error Handling:
    Any SQLAlchemyError is logged with the operation name and re-raised as
    StorageError. The original exception is chained (`raise ... from`) for
    server-side tracebacks but never reaches the client.
"""

import functools
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar
from uuid import UUID

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from smart_mobility.exceptions import ConflictError, StorageError
from smart_mobility.models.route import FrequentRoute
from smart_mobility.models.user import User, normalize_email
from smart_mobility.stores.base import (
    GeoPoint,
    RouteSortKey,
    RouteStore,
    UsageSummary,
    UserStore,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def storage_operation(name: str) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Wraps a store coroutine so SQLAlchemy failures surface as StorageError."""

    def decorator(func_: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func_)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return await func_(*args, **kwargs)
            except SQLAlchemyError as e:
                logger.error("Storage operation '%s' failed: %s", name, str(e), exc_info=True)
                raise StorageError(
                    context={"operation": name, "error_type": type(e).__name__},
                ) from e

        return wrapper

    return decorator


# ── Sort key → ORDER BY ───────────────────────────────────────────────────
# Each ordering ends on the primary key so equal timestamps or counters
# still produce one stable order.
_ORDERINGS: Dict[RouteSortKey, Tuple[Any, ...]] = {
    RouteSortKey.LAST_USED: (
        FrequentRoute.last_used.desc(),
        FrequentRoute.created_at.desc(),
        FrequentRoute.id,
    ),
    RouteSortKey.TIMES_USED: (
        FrequentRoute.times_used.desc(),
        FrequentRoute.last_used.desc(),
        FrequentRoute.id,
    ),
    RouteSortKey.CREATED_AT: (
        FrequentRoute.created_at.desc(),
        FrequentRoute.id,
    ),
}


def _owned_by(stmt: Select, user_id: UUID, active: Optional[bool]) -> Select:
    stmt = stmt.where(FrequentRoute.user_id == user_id)
    if active is not None:
        stmt = stmt.where(FrequentRoute.is_active == active)
    return stmt


class SqlRouteStore(RouteStore):
    """RouteStore bound to one AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @storage_operation("routes.find_matches")
    async def find_matches(
        self,
        user_id: UUID,
        origin: GeoPoint,
        destination: GeoPoint,
        tolerance: float,
        active: Optional[bool] = True,
    ) -> List[FrequentRoute]:
        # abs(stored - new) <= T on each axis, evaluated by the database in
        # double precision, same arithmetic as the Python side.
        stmt = _owned_by(select(FrequentRoute), user_id, active).where(
            func.abs(FrequentRoute.origin_latitude - origin.latitude) <= tolerance,
            func.abs(FrequentRoute.origin_longitude - origin.longitude) <= tolerance,
            func.abs(FrequentRoute.destination_latitude - destination.latitude) <= tolerance,
            func.abs(FrequentRoute.destination_longitude - destination.longitude) <= tolerance,
        )
        stmt = stmt.order_by(*_ORDERINGS[RouteSortKey.LAST_USED])
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    @storage_operation("routes.get")
    async def get(
        self, route_id: UUID, user_id: UUID, active: Optional[bool] = True
    ) -> Optional[FrequentRoute]:
        stmt = _owned_by(select(FrequentRoute), user_id, active).where(
            FrequentRoute.id == route_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    @storage_operation("routes.add")
    async def add(self, route: FrequentRoute) -> FrequentRoute:
        self.session.add(route)
        await self.session.flush()
        return route

    @storage_operation("routes.save")
    async def save(self, route: FrequentRoute) -> FrequentRoute:
        await self.session.flush()
        return route

    @storage_operation("routes.list")
    async def list_routes(
        self,
        user_id: UUID,
        sort: RouteSortKey = RouteSortKey.LAST_USED,
        limit: Optional[int] = None,
        active: Optional[bool] = True,
    ) -> List[FrequentRoute]:
        stmt = _owned_by(select(FrequentRoute), user_id, active).order_by(*_ORDERINGS[sort])
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    @storage_operation("routes.page")
    async def page(
        self,
        user_id: UUID,
        offset: int,
        limit: int,
        active: Optional[bool] = None,
    ) -> List[FrequentRoute]:
        stmt = (
            _owned_by(select(FrequentRoute), user_id, active)
            .order_by(*_ORDERINGS[RouteSortKey.LAST_USED])
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    @storage_operation("routes.count")
    async def count(self, user_id: UUID, active: Optional[bool] = None) -> int:
        stmt = _owned_by(select(func.count(FrequentRoute.id)), user_id, active)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    @storage_operation("routes.usage_summary")
    async def usage_summary(
        self, user_id: UUID, active: Optional[bool] = True
    ) -> UsageSummary:
        stmt = _owned_by(
            select(
                func.count(FrequentRoute.id),
                func.coalesce(func.sum(FrequentRoute.times_used), 0),
                func.avg(FrequentRoute.times_used),
            ),
            user_id,
            active,
        )
        result = await self.session.execute(stmt)
        count, total, average = result.one()
        # PostgreSQL returns Decimal for AVG over integers
        return UsageSummary(
            count=int(count or 0),
            total=int(total or 0),
            average=float(average) if average is not None else 0.0,
        )

    @storage_operation("routes.deactivate")
    async def deactivate(self, route_id: UUID, user_id: UUID) -> bool:
        stmt = (
            update(FrequentRoute)
            .where(
                FrequentRoute.id == route_id,
                FrequentRoute.user_id == user_id,
                FrequentRoute.is_active == True,  # noqa: E712
            )
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) > 0


class SqlUserStore(UserStore):
    """UserStore bound to one AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @storage_operation("users.get")
    async def get(self, user_id: UUID, for_update: bool = False) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        if for_update:
            # Reload even if the row is already in the identity map: the
            # values read under the lock are the ones to increment.
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    @storage_operation("users.get_by_email")
    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    @storage_operation("users.get_by_google_id_or_email")
    async def get_by_google_id_or_email(
        self, google_id: str, email: Optional[str]
    ) -> Optional[User]:
        conditions = [User.google_id == google_id]
        if email:
            conditions.append(User.email == normalize_email(email))
        # Prefer the account already linked to this Google subject
        stmt = (
            select(User)
            .where(or_(*conditions))
            .order_by((User.google_id == google_id).desc(), User.created_at)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, user: User) -> User:
        self.session.add(user)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("User insert rejected by a unique constraint: %s", type(e).__name__)
            raise ConflictError(
                message="This email is already registered",
                field="email",
            ) from e
        except SQLAlchemyError as e:
            logger.error("Storage operation 'users.add' failed: %s", str(e), exc_info=True)
            raise StorageError(
                context={"operation": "users.add", "error_type": type(e).__name__},
            ) from e
        return user

    @storage_operation("users.save")
    async def save(self, user: User) -> User:
        await self.session.flush()
        return user
