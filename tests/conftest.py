from __future__ import annotations

import os

# boto3 clients are created when dal and notifier are imported
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("POWERTOOLS_TRACE_DISABLED", "1")
os.environ.setdefault("POWERTOOLS_METRICS_NAMESPACE", "CourtBooking")

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from factories import coach_factory, court_factory, default_equipment  # noqa: E402

from court_booking.catalog import Catalog  # noqa: E402
from court_booking.service import FacilityService  # noqa: E402

NOW = datetime(2030, 1, 1, 8, 0)


@pytest.fixture()
def catalog() -> Catalog:
    return Catalog(
        courts=[court_factory(), court_factory(id="c-2", name="Court 2", type="indoor")],
        coaches=[coach_factory()],
        equipment=default_equipment(),
    )


@pytest.fixture()
def service(catalog: Catalog) -> FacilityService:
    return FacilityService(catalog, clock=lambda: NOW, lock_timeout=2)
