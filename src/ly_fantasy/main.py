from __future__ import annotations

import logging
import sys
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date, datetime, timezone

import strawberry
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi import Query as QueryParam
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from strawberry.extensions import QueryDepthLimiter
from strawberry.fastapi import GraphQLRouter
from strawberry.types import Info

from . import config as cfg
from .client import LYApiClient, LYApiError
from .db import Database, League
from .etl import RefreshOptions, resolve_types, results_to_dict, run_refresh, total_result
from .fetchers.rollcall import DEFAULT_LIMIT as ROLLCALL_DEFAULT_LIMIT
from .fetchers.roster import sync_roster
from .matchups import standings as league_standings
from .run_log import RunLogger, load_recent_runs
from .schema import (
    LegislatorConnection,
    LegislatorSortField,
    LegislatorType,
    SortOrder,
    TeamStandingType,
    WeeklyScoreType,
    paginate,
)
from .store import ScoreStore
from .weekly import (
    average_by_category,
    average_weekly_score,
    current_week,
    week_start,
    weekly_breakdown,
)

# ── Configure logging ────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:     %(message)s",
    stream=sys.stderr,
)
LOGGER = logging.getLogger(__name__)

MAX_WEEKS = 104


def _db_from(app: FastAPI) -> Database:
    db: Database | None = getattr(app.state, "db", None)
    if db is None:
        db = Database(cfg.DATABASE_URL)
        db.create_all()
        app.state.db = db
    return db


def _check_cron_auth(request: Request) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>``; closed when the secret is unset."""
    secret = cfg.CRON_SECRET
    if not secret or request.headers.get("Authorization", "") != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")


def _weekly_window(
    scores: list, season_start: date | None, weeks: int | None
) -> tuple[date | None, int]:
    """Default the season to the first score's week and the span to the current week."""
    if season_start is None:
        if not scores:
            return None, 0
        season_start = week_start(min(s.date for s in scores))
    if weeks is None:
        weeks = current_week(season_start)
    return season_start, max(0, min(weeks, MAX_WEEKS))


# ── GraphQL ──────────────────────────────────────────────────────────────────


def _info_db(info: Info) -> Database:
    return _db_from(info.context["request"].app)


@strawberry.type
class Query:
    @strawberry.field(description="Look up a single legislator by id, with scores newest first.")
    def legislator(self, info: Info, id: str) -> LegislatorType | None:
        with _info_db(info).session() as session:
            store = ScoreStore(session)
            model = store.legislator_by_id(id)
            if model is None:
                return None
            return LegislatorType.from_model(model, store.scores_for([model.id]))

    @strawberry.field(description="Paginated legislators with optional party filter and sorting.")
    def legislators(
        self,
        info: Info,
        party: str | None = None,
        sort_by: LegislatorSortField | None = None,
        sort_order: SortOrder | None = None,
        offset: int = 0,
        limit: int = 0,
    ) -> LegislatorConnection:
        with _info_db(info).session() as session:
            store = ScoreStore(session)
            result = store.list_legislators()
            totals = store.points_by_legislator()
            if party:
                result = [m for m in result if m.party == party]
            if sort_by is not None:
                reverse = sort_order == SortOrder.DESC
                if sort_by == LegislatorSortField.PARTY:
                    result.sort(key=lambda m: (m.party or "", m.name_ch), reverse=reverse)
                else:
                    result.sort(key=lambda m: m.name_ch, reverse=reverse)
            page, page_info = paginate(result, offset, limit)
            items = []
            for m in page:
                item = LegislatorType.from_model(m)
                item.total_points = totals.get(m.id, 0.0)
                items.append(item)
            return LegislatorConnection(items=items, page_info=page_info)

    @strawberry.field(description="Per-week category totals for one legislator (caps applied).")
    def weekly_scores(
        self,
        info: Info,
        legislator_id: str,
        season_start: date | None = None,
        weeks: int | None = None,
    ) -> list[WeeklyScoreType]:
        with _info_db(info).session() as session:
            scores = ScoreStore(session).scores_for([legislator_id])
            start, span = _weekly_window(scores, season_start, weeks)
            if start is None:
                return []
            return [WeeklyScoreType.from_model(w) for w in weekly_breakdown(scores, start, span)]

    @strawberry.field(description="League teams ordered by record.")
    def standings(self, info: Info, league_id: str) -> list[TeamStandingType]:
        with _info_db(info).session() as session:
            league = session.get(League, league_id)
            if league is None:
                return []
            return [TeamStandingType.from_model(t) for t in league_standings(league)]


schema = strawberry.Schema(query=Query, extensions=[QueryDepthLimiter(max_depth=10)])


# ── App factory ──────────────────────────────────────────────────────────────


def create_app(
    database: Database | None = None,
    client_factory: Callable[[], LYApiClient] = LYApiClient,
) -> FastAPI:
    """Build the API.  Tests pass an in-memory :class:`Database` and a fake client."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        db = _db_from(app)
        db.create_all()
        LOGGER.info("Database ready (%s, profile=%s)", db.url, cfg.PROFILE)
        yield
        db.close()

    app = FastAPI(title="LY Fantasy", lifespan=lifespan)
    app.state.db = database
    app.state.client_factory = client_factory

    # ── CORS middleware ──────────────────────────────────────────────────────
    _cors_origins = [o.strip() for o in cfg.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── API key authentication middleware ────────────────────────────────────
    @app.middleware("http")
    async def _api_key_middleware(  # type: ignore[no-untyped-def]
        request: Request, call_next
    ) -> Response:
        """Require ``X-API-Key`` when ``LYF_API_KEY`` is set.

        Health, docs, CORS preflight and the bearer-authenticated cron routes are exempt.
        """
        if cfg.API_KEY:
            exempt = {
                "/health",
                "/docs",
                "/openapi.json",
                "/redoc",
                "/api/refresh-data",
                "/api/legislators/sync",
            }
            if request.url.path not in exempt and request.method != "OPTIONS":
                if request.headers.get("X-API-Key", "") != cfg.API_KEY:
                    return JSONResponse(
                        status_code=401, content={"detail": "Invalid or missing API key"}
                    )
        return await call_next(request)

    # ── Request logging middleware ───────────────────────────────────────────
    @app.middleware("http")
    async def _request_logging_middleware(  # type: ignore[no-untyped-def]
        request: Request, call_next
    ) -> Response:
        t0 = time.perf_counter()
        response: Response = await call_next(request)
        LOGGER.info(
            "%s %s %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - t0) * 1000,
        )
        return response

    # ── Health endpoint ──────────────────────────────────────────────────────
    @app.get("/health")
    def health() -> dict:
        with _db_from(app).session() as session:
            store = ScoreStore(session)
            legislators = len(store.list_legislators())
            scores = store.count_scores()
        return {
            "status": "ok",
            "ready": legislators > 0,
            "legislators": legislators,
            "scores": scores,
        }

    # ── Legislators ──────────────────────────────────────────────────────────
    @app.get("/api/legislators")
    def list_legislators(
        party: str | None = None,
        limit: int = QueryParam(0, ge=0),
        offset: int = QueryParam(0, ge=0),
    ) -> dict:
        with _db_from(app).session() as session:
            store = ScoreStore(session)
            rows = store.list_legislators()
            if party:
                rows = [r for r in rows if r.party == party]
            totals = store.points_by_legislator()
            page, info = paginate(rows, offset, limit)
            return {
                "items": [{**r.to_dict(), "totalPoints": totals.get(r.id, 0.0)} for r in page],
                "totalCount": info.total_count,
                "hasNextPage": info.has_next_page,
            }

    @app.get("/api/legislators/{legislator_id}")
    def get_legislator(legislator_id: str) -> dict:
        with _db_from(app).session() as session:
            store = ScoreStore(session)
            legislator = store.legislator_by_id(legislator_id)
            if legislator is None:
                raise HTTPException(status_code=404, detail="Legislator not found")
            scores = store.scores_for([legislator.id])
            return {
                **legislator.to_dict(),
                "totalPoints": sum(float(s.points) for s in scores),
                "averageWeeklyScore": average_weekly_score(scores),
                "averageByCategory": average_by_category(scores).to_dict(),
                "scores": [s.to_dict() for s in scores],
            }

    @app.get("/api/legislators/{legislator_id}/weekly")
    def get_weekly(
        legislator_id: str,
        season_start: date | None = None,
        weeks: int | None = QueryParam(None, ge=0),
    ) -> dict:
        with _db_from(app).session() as session:
            store = ScoreStore(session)
            if store.legislator_by_id(legislator_id) is None:
                raise HTTPException(status_code=404, detail="Legislator not found")
            scores = store.scores_for([legislator_id])
            start, span = _weekly_window(scores, season_start, weeks)
            summaries = weekly_breakdown(scores, start, span) if start else []
            return {
                "legislatorId": legislator_id,
                "seasonStart": start.isoformat() if start else None,
                "weeks": [w.to_dict() for w in summaries],
            }

    @app.post("/api/legislators/sync")
    def sync_legislators(request: Request) -> dict:
        _check_cron_auth(request)
        client = app.state.client_factory()
        with RunLogger("sync:roster") as log:
            try:
                with log.phase("Roster"):
                    result = sync_roster(_db_from(app), client)
            except LYApiError as exc:
                log.fail(str(exc))
                LOGGER.error("Roster sync failed: %s", exc)
                return JSONResponse(status_code=502, content={"success": False, "error": str(exc)})
            finally:
                client.close()
            log.meta.update(result.to_dict())
        return {"success": True, **result.to_dict()}

    # ── Cron refresh ─────────────────────────────────────────────────────────
    @app.get("/api/refresh-data")
    def refresh_data(
        request: Request,
        type: str = "all",
        limit: int | None = QueryParam(None, ge=1),
        offset: int = QueryParam(0, ge=0),
        rollcall_limit: int = QueryParam(ROLLCALL_DEFAULT_LIMIT, ge=1),
        rollcall_offset: int = QueryParam(0, ge=0),
    ) -> Response:
        _check_cron_auth(request)
        try:
            resolve_types(type)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        opts = RefreshOptions(
            limit=limit,
            offset=offset,
            rollcall_limit=rollcall_limit,
            rollcall_offset=rollcall_offset,
        )
        client = app.state.client_factory()
        with RunLogger(f"refresh:{type}") as log:
            try:
                with log.phase("Refresh", detail=type):
                    results = run_refresh(_db_from(app), client, type, opts)
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception("Data refresh failed")
                log.fail(str(exc))
                return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})
            finally:
                client.close()
            log.meta.update(total_result(results).to_dict())
        return JSONResponse(
            {
                "success": True,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "results": results_to_dict(results),
            }
        )

    # ── Run log ──────────────────────────────────────────────────────────────
    @app.get("/api/runs")
    def recent_runs(
        limit: int = QueryParam(20, ge=1, le=500), task: str | None = None
    ) -> list[dict]:
        return [asdict(r) for r in load_recent_runs(limit, task=task)]

    app.include_router(GraphQLRouter(schema), prefix="/graphql")
    return app


app = create_app()
