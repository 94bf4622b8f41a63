"""
FastAPI entrypoint.

A thin JSON shell over the dashboard core. This file focuses on:
- routing
- request/response handling
- handing every action to the interactive context

Run with: uvicorn weatherdesk.main:app
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, HTTPException, Request
from sqlalchemy.orm import sessionmaker

from .dashboard import Dashboard
from .schemas import (
    DashboardOut,
    FavoriteIn,
    InputIn,
    IntervalIn,
    PickIn,
    RefreshIn,
    RefreshOut,
    SearchIn,
    ViewModelOut,
)
from .settings import Settings, settings as default_settings


def configure_logging(level: str) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


def dashboard_state(dashboard: Dashboard) -> DashboardOut:
    """Snapshot of the dashboard; call on the interactive context."""
    orch = dashboard.orchestrator
    vm = orch.view_model
    return DashboardOut(
        view_model=ViewModelOut.from_domain(vm) if vm is not None else None,
        error=orch.last_error,
        input=dashboard.suggestions.text,
        suggestions=dashboard.suggestions.labels,
        recents=list(orch.recents),
        favorites=list(orch.favorites),
        refresh=RefreshOut(enabled=dashboard.scheduler.running, interval_s=dashboard.scheduler.interval_s),
        backend=dashboard.source.name,
        demo_mode=dashboard.demo_mode,
        theme=dashboard.theme,
    )


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        dashboard = Dashboard(settings, session_factory=session_factory, transport=transport)
        await dashboard.start()
        app.state.dashboard = dashboard
        try:
            yield
        finally:
            await dashboard.stop()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    def get_dashboard(request: Request) -> Dashboard:
        return request.app.state.dashboard

    async def state(dashboard: Dashboard) -> DashboardOut:
        return await dashboard.dispatcher.call(dashboard_state, dashboard)

    @app.get("/api/dashboard", response_model=DashboardOut)
    async def api_dashboard(request: Request):
        """Current view model, last error, lists and refresh state."""
        return await state(get_dashboard(request))

    @app.post("/api/search", response_model=DashboardOut)
    async def api_search(payload: SearchIn, request: Request):
        """
        Free-text search. Waits for both fetches; on failure the previous
        view model is kept and the error is returned as a 400.
        """
        if not payload.text.strip():
            raise HTTPException(status_code=400, detail="Empty query")
        dashboard = get_dashboard(request)
        await dashboard.run(dashboard.search_text, payload.text)
        out = await state(dashboard)
        if out.error:
            raise HTTPException(status_code=400, detail=out.error)
        return out

    @app.put("/api/input", response_model=DashboardOut)
    async def api_input(payload: InputIn, request: Request):
        """Keystroke in the search box; suggestions arrive after the debounce delay."""
        dashboard = get_dashboard(request)
        await dashboard.dispatcher.call(dashboard.suggestions.text_changed, payload.text)
        return await state(dashboard)

    @app.get("/api/suggestions")
    async def api_suggestions(request: Request):
        dashboard = get_dashboard(request)
        return await dashboard.dispatcher.call(lambda: dashboard.suggestions.labels)

    @app.post("/api/suggestions/pick", response_model=DashboardOut)
    async def api_pick(payload: PickIn, request: Request):
        """Pick a suggestion label and search by its coordinates."""
        dashboard = get_dashboard(request)
        try:
            await dashboard.run(dashboard.pick, payload.label)
        except KeyError:
            raise HTTPException(status_code=404, detail="Unknown suggestion")
        out = await state(dashboard)
        if out.error:
            raise HTTPException(status_code=400, detail=out.error)
        return out

    @app.post("/api/forecast/{index}/select", response_model=DashboardOut)
    async def api_select_day(index: int, request: Request):
        """Show the hourly chart for another forecast day."""
        dashboard = get_dashboard(request)
        await dashboard.dispatcher.call(dashboard.orchestrator.select_day, index)
        return await state(dashboard)

    @app.post("/api/refresh", response_model=RefreshOut)
    async def api_refresh(payload: RefreshIn, request: Request):
        dashboard = get_dashboard(request)
        await dashboard.dispatcher.call(dashboard.scheduler.set_enabled, payload.enabled)
        return (await state(dashboard)).refresh

    @app.put("/api/refresh/interval", response_model=RefreshOut)
    async def api_refresh_interval(payload: IntervalIn, request: Request):
        """Interval is clamped to the configured range."""
        dashboard = get_dashboard(request)
        await dashboard.dispatcher.call(dashboard.scheduler.set_interval, payload.seconds)
        return (await state(dashboard)).refresh

    @app.get("/api/favorites")
    async def api_favorites(request: Request):
        dashboard = get_dashboard(request)
        return await dashboard.dispatcher.call(lambda: list(dashboard.orchestrator.favorites))

    @app.post("/api/favorites")
    async def api_add_favorite(payload: FavoriteIn, request: Request):
        """Add a name, or the current search text when no name is given."""
        dashboard = get_dashboard(request)
        added = await dashboard.dispatcher.call(dashboard.add_current_favorite, payload.name)
        favorites = await dashboard.dispatcher.call(lambda: list(dashboard.orchestrator.favorites))
        return {"added": added, "favorites": favorites}

    @app.delete("/api/favorites/{name}")
    async def api_remove_favorite(name: str, request: Request):
        dashboard = get_dashboard(request)
        removed = await dashboard.dispatcher.call(dashboard.orchestrator.remove_favorite, name)
        if not removed:
            raise HTTPException(status_code=404, detail="Favorite not found")
        return {"ok": True}

    return app


app = create_app()
