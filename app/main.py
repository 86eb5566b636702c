import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.agency import AgencySettings, InMemoryAgencySettingsStore, PostgresAgencySettingsStore
from app.api.routes import display, metrics, ping, reports, settings as settings_routes, stats, tickets
from app.core.config import Settings, get_settings
from app.core.logging import configure_logging, init_tracer, shutdown_tracer
from app.queue import ChangeFeed, DisplayBoard, InMemoryTicketStore, QueueEngine, QueueView, TicketStore
from app.queue.numbering import resolve_timezone
from app.queue.repository import SqlTicketStore
from app.services.postgres import PostgresChangeListener, PostgresConnectionTester, sqlalchemy_dsn

logger = logging.getLogger(__name__)


def build_engine(settings: Settings, store: TicketStore) -> QueueEngine:
    return QueueEngine(
        store,
        tz=resolve_timezone(settings.queue_timezone),
        call_next_retries=settings.queue_call_next_retries,
        call_retry_delay=settings.queue_call_retry_delay,
        number_retries=settings.queue_number_retries,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    app.state.logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)
    app.state.tracer_provider = tracer_provider

    feed = ChangeFeed(buffer_size=settings.queue_feed_buffer)
    default_agency = AgencySettings(agency_name=settings.agency_name)
    postgres_tester: PostgresConnectionTester | None = None
    listener: PostgresChangeListener | None = None
    db_engine = None
    store: TicketStore | None = None

    if settings.storage_backend == "postgres":
        postgres_tester = PostgresConnectionTester(dsn=settings.postgres_dsn)
        try:
            await postgres_tester.test_connection()
            db_engine = create_async_engine(sqlalchemy_dsn(settings.postgres_dsn), future=True)
            session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
            postgres_store = SqlTicketStore(
                session_factory, engine=db_engine, feed=feed, notify_channel=settings.notify_channel
            )
            await postgres_store.ensure_schema()
            listener = PostgresChangeListener(
                dsn=settings.postgres_dsn, store=postgres_store, channel=settings.notify_channel
            )
            await listener.start()
            store = postgres_store
            app.state.agency_settings_store = PostgresAgencySettingsStore(session_factory, default=default_agency)
        except Exception:
            logger.exception("PostgreSQL ticket store is unavailable; queue endpoints will answer 503")
            store = None
    else:
        store = InMemoryTicketStore(feed)
        app.state.agency_settings_store = InMemoryAgencySettingsStore(default_agency)

    view: QueueView | None = None
    app.state.queue_engine = None
    app.state.queue_view = None
    app.state.display_board = DisplayBoard(history_size=settings.queue_display_history)
    if store is not None:
        app.state.queue_engine = build_engine(settings, store)
        view = QueueView(store)
        await view.start()
        app.state.queue_view = view
        logger.info("Queue engine ready (%s store, timezone %s)", settings.storage_backend, settings.queue_timezone)

    try:
        yield
    finally:
        if view is not None:
            await view.stop()
        if listener is not None:
            await listener.stop()
        if db_engine is not None:
            await db_engine.dispose()
        if postgres_tester is not None:
            await postgres_tester.close()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(metrics.router)
    app.include_router(tickets.router)
    app.include_router(display.router)
    app.include_router(stats.router)
    app.include_router(reports.router)
    app.include_router(settings_routes.router)
    return app


app = create_app()
