from contextlib import asynccontextmanager

import asyncpg
from fastapi import FastAPI

from helpdesk.api.routes import issues, metrics, ping, tickets
from helpdesk.core.config import Settings, get_settings
from helpdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from helpdesk.metrics import metrics_registry
from helpdesk.middleware import RBACMiddleware
from helpdesk.tickets.catalog import load_catalog
from helpdesk.tickets.repository import InMemoryTicketRepository, PostgresTicketRepository, TicketStore
from helpdesk.tickets.service import TicketService
from helpdesk.tickets.sweep import SlaSweeper


async def _build_store(settings: Settings) -> tuple[TicketStore, asyncpg.Pool | None]:
    if settings.ticket_store != "postgres":
        return InMemoryTicketRepository(), None

    pool = await asyncpg.create_pool(
        dsn=settings.postgres_dsn,
        min_size=settings.postgres_min_pool_size,
        max_size=settings.postgres_max_pool_size,
    )
    repository = PostgresTicketRepository(pool)
    try:
        await repository.ensure_schema()
    except Exception:
        await pool.close()
        raise
    return repository, pool


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    app.state.metrics = metrics_registry
    app.state.catalog = load_catalog(settings.catalog_path)

    store, pool = await _build_store(settings)
    service = TicketService(store, app.state.catalog, metrics=metrics_registry)
    app.state.ticket_service = service
    logger.info("Ticket store: %s", settings.ticket_store)

    sweeper: SlaSweeper | None = None
    if settings.sla_sweep_enabled:
        sweeper = SlaSweeper(service, interval_seconds=settings.sla_sweep_interval_seconds)
        sweeper.start()
    app.state.sla_sweeper = sweeper
    try:
        yield
    finally:
        if sweeper is not None:
            await sweeper.stop()
        if pool is not None:
            await pool.close()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(RBACMiddleware)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    app.include_router(issues.router)
    app.include_router(metrics.router)
    return app


app = create_app()
