"""Builders shared by the test modules: clock, places and route rows."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from smart_mobility.models.route import FrequentRoute
from smart_mobility.schemas.route import CoordinatesIn, PlaceIn

T0 = datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)
TEST_PASSWORD = "correct horse battery staple"


class FakeClock:
    """Deterministic clock: each call returns a time one step after the last."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        self.current = self.current + self.step
        return self.current


def place(lat: float, lng: float, name: Optional[str] = None, address: Optional[str] = None) -> PlaceIn:
    return PlaceIn(
        name=name,
        address=address,
        coordinates=CoordinatesIn(latitude=lat, longitude=lng),
    )


def place_json(lat: float, lng: float, name: Optional[str] = None) -> dict:
    return {"name": name, "coordinates": {"latitude": lat, "longitude": lng}}


def make_route(user_id, origin, destination, last_used=T0, is_active=True, **kwargs) -> FrequentRoute:
    """An unsaved FrequentRoute; origin/destination are (lat, lng) tuples."""
    return FrequentRoute(
        id=uuid.uuid4(),
        user_id=user_id,
        route_name=kwargs.pop("route_name", "Home → Work"),
        origin_latitude=origin[0],
        origin_longitude=origin[1],
        destination_latitude=destination[0],
        destination_longitude=destination[1],
        times_used=kwargs.pop("times_used", 1),
        last_used=last_used,
        is_active=is_active,
        created_at=kwargs.pop("created_at", T0),
        **kwargs,
    )
