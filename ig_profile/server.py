"""
HTTP front end for profile scrapes.

Endpoints:
- GET /health
- GET /profile/{username}?posts=N
- GET /api/profile/{username}?posts=N
"""

from __future__ import annotations

import uuid
from typing import Awaitable, Callable

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from .browser import DriverFactory
from .config_schema import AppConfig
from .errors import ReconciliationFailure
from .models import ProfileRecord
from .pipeline import resolve_sample_size, scrape_profile
from .run_log import RunLogger

ScrapeFn = Callable[[str, int], Awaitable[ProfileRecord]]


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def create_app(
    config: AppConfig,
    *,
    open_driver: DriverFactory,
    logger: RunLogger,
) -> FastAPI:
    app = FastAPI(title="Instagram Profile Scraper", version="0.1.0")

    async def _run(username: str, sample_size: int) -> ProfileRecord:
        run_log = logger.bind(run_id=uuid.uuid4().hex)
        return await scrape_profile(
            username,
            config=config,
            open_driver=open_driver,
            logger=run_log,
            sample_size=sample_size,
        )

    app.state.scrape = _run

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/profile")
    @app.get("/profile/")
    @app.get("/api/profile")
    @app.get("/api/profile/")
    async def missing_username() -> JSONResponse:
        return _error(400, "username required")

    @app.get("/profile/{username}")
    @app.get("/api/profile/{username}")
    async def get_profile(
        username: str,
        posts: str | None = Query(default=None),
    ) -> JSONResponse:
        name = (username or "").strip()
        if not name:
            return _error(400, "username required")

        sample_size = resolve_sample_size(posts, config.sampling)
        scrape: ScrapeFn = app.state.scrape

        try:
            record = await scrape(name, sample_size)
        except ReconciliationFailure as e:
            logger.error("scrape_failed", username=name, reason=str(e))
            return _error(500, str(e))
        except Exception as e:
            logger.exception("scrape_error", exc=e, username=name)
            return _error(500, str(e) or type(e).__name__)

        return JSONResponse(record.to_dict(), status_code=200)

    return app
