"""FastAPI bridge between the CalQ UI shell and the command dispatcher"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import uvicorn
from dotenv import load_dotenv
from fastapi import Body, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from calq import config
from calq.api.commands import CommandDispatcher, UnknownCommandError
from calq.calendar.client import client_factory
from calq.calendar.fetch import CalendarFetcher
from calq.calendar.oauth import GoogleOAuthService
from calq.digest.scheduler import DigestScheduler, InvalidTriggerTimeError
from calq.digest.service import DigestService
from calq.infrastructure.database import init_database, validate_schema
from calq.observability.logging import configure_file_logging, get_logger
from calq.observability.telemetry import counter, log_event, snapshot
from calq.storage.app_settings import AppSettingsStore
from calq.storage.settings_repository import SettingsRepository

logger = get_logger(__name__)

# The UI shell loads from a local origin only
ALLOWED_ORIGINS = [
    f"http://{config.API_HOST}:{config.API_PORT}",
    f"http://localhost:{config.API_PORT}",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


def build_dispatcher(db_path: Path | str | None = None) -> CommandDispatcher:
    """Wire the settings store, OAuth, fetcher, digest service and scheduler."""
    settings = AppSettingsStore(SettingsRepository(db_path=db_path))
    oauth = GoogleOAuthService(settings)
    fetcher = CalendarFetcher(client_factory(oauth))
    service = DigestService(fetcher, settings)
    scheduler = DigestScheduler(service)
    return CommandDispatcher(settings, oauth, fetcher, scheduler)


def create_app(dispatcher: CommandDispatcher) -> FastAPI:
    app = FastAPI(title=f"{config.APP_NAME} API", version=config.APP_VERSION)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
        counter("api.validation_errors")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": "Invalid request format. Please check your request and try again.",
                "error_count": len(exc.errors()),
            },
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    @app.get("/health")
    def health_check() -> dict[str, Any]:
        """Liveness plus connection and scheduler status (no API calls)."""
        return {
            "status": "healthy",
            "service": f"{config.APP_NAME} API",
            "version": config.APP_VERSION,
            "timestamp": datetime.now(UTC).isoformat(),
            "authenticated": dispatcher.oauth.is_authenticated(),
            "reminders_armed": dispatcher.scheduler.is_armed,
            "telemetry": snapshot(),
        }

    @app.get("/api/commands")
    def list_commands() -> dict[str, Any]:
        return {"actions": dispatcher.actions}

    @app.post("/api/commands/{action}")
    def run_command(action: str, payload: Any = Body(default=None)) -> dict[str, Any]:
        """
        Run one dispatcher action

        Declared sync so blocking handlers (OAuth loopback, SMTP) run in
        the threadpool.
        """
        try:
            return dispatcher.dispatch(action, payload)
        except UnknownCommandError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

    return app


def main() -> None:
    """Console entry point: init storage, arm reminders, serve on loopback."""
    load_dotenv()
    configure_file_logging(config.LOG_PATH)

    try:
        init_database()
        validate_schema()
    except (sqlite3.OperationalError, ValueError) as e:
        logger.critical("Database initialization failed: %s", e)
        raise RuntimeError(f"Database initialization failed: {e}") from e

    dispatcher = build_dispatcher()
    try:
        dispatcher.scheduler.arm(dispatcher.settings.load().reminders)
    except InvalidTriggerTimeError as e:
        logger.warning("Stored reminder time invalid, reminders disarmed: %s", e)
    dispatcher.scheduler.start()

    log_event("api.startup", service="calq", version=config.APP_VERSION)
    try:
        uvicorn.run(create_app(dispatcher), host=config.API_HOST, port=config.API_PORT)
    finally:
        dispatcher.scheduler.shutdown()


if __name__ == "__main__":
    main()
