"""Application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from tiergate import __version__
from tiergate.api.v1 import setup_routers
from tiergate.config import TierGateSettings, load_settings
from tiergate.db.session import Database
from tiergate.i18n import I18nService
from tiergate.logging import configure_logging, logger
from tiergate.services.error_monitor import ErrorMonitor
from tiergate.services.gate import GateService
from tiergate.services.usage import UsageAccountant


def create_app(
    settings: TierGateSettings | None = None,
    *,
    database: Database | None = None,
) -> FastAPI:
    """Wire every component from one settings object.

    This is the only place settings are constructed; services receive the
    instance explicitly.
    """

    settings = settings or load_settings()
    database = database or Database(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.database.create_schema:
            await database.create_all()
        logger.info("tiergate_starting", environment=settings.environment)
        yield
        await database.dispose()
        logger.info("tiergate_stopped")

    app = FastAPI(title="tiergate", version=__version__, lifespan=lifespan)

    i18n = I18nService(default_locale=settings.default_language)
    accountant = UsageAccountant(database, settings)
    app.state.settings = settings
    app.state.database = database
    app.state.i18n = i18n
    app.state.gate = GateService(accountant, settings, i18n=i18n)

    ErrorMonitor(settings).register(app)
    app.include_router(setup_routers())
    return app


def run() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    app = create_app(settings)
    uvicorn.run(app, host=settings.http.host, port=settings.http.port, log_config=None)


if __name__ == "__main__":
    run()
