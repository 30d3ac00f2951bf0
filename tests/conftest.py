from __future__ import annotations

import pytest

from helpdesk.metrics import MetricsRegistry, register_default_metrics
from helpdesk.tickets.catalog import ReferenceCatalog, load_catalog
from helpdesk.tickets.repository import InMemoryTicketRepository
from helpdesk.tickets.service import TicketService

from tests.factories import FakeClock


@pytest.fixture
def catalog() -> ReferenceCatalog:
    return load_catalog()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> MetricsRegistry:
    return register_default_metrics(MetricsRegistry())


@pytest.fixture
def store() -> InMemoryTicketRepository:
    return InMemoryTicketRepository()


@pytest.fixture
def service(store, catalog, clock, registry) -> TicketService:
    return TicketService(store, catalog, clock=clock, metrics=registry)
