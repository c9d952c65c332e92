"""
FastAPI application and endpoints
Control surface for the homework solver: start/stop the scheduler, run a
single cycle, inspect status and logs, change settings at runtime.
"""
import os
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, HttpUrl

from actuator import Actuator
from browser import BrowserNotStarted, BrowserSession
from config import SolverConfig
from llm_client import CompletionError, LLMClient
from log_history import set_level, setup_logging
import log_history
from scheduler import Scheduler
from solver import HomeworkSolver
from web_search import WebSearch

logger = logging.getLogger(__name__)


class SolverRuntime:
    """Browser, solver and scheduler wired together for one page"""

    def __init__(self, config: SolverConfig, session=None, actuator=None, llm=None, web_search=None):
        self.config = config
        self.session = session or BrowserSession(headless=config.headless)
        self.actuator = actuator or Actuator(self.session, config)
        self.llm = llm or LLMClient(config)
        self.solver = HomeworkSolver(self.session, self.actuator, self.llm, config,
                                     web_search=web_search or WebSearch())
        # Held by every solve cycle, scheduled or manual
        self.cycle_lock = asyncio.Lock()
        self.scheduler = Scheduler(self.run_cycle, self.solver.skip_current_question, config)

    @property
    def cycle_running(self) -> bool:
        return self.cycle_lock.locked()

    async def run_cycle(self, include_solved: bool = False):
        async with self.cycle_lock:
            return await self.solver.solve_once(include_solved=include_solved)

    async def open(self):
        await self.session.start()
        if self.config.start_url:
            await self.session.navigate(self.config.start_url)

    async def close(self):
        self.scheduler.stop()
        await self.session.stop()

    def status(self) -> Dict[str, Any]:
        return {
            "browser_started": self.session.started,
            "scheduler": self.scheduler.to_dict(),
            "solver_status": self.solver.status,
            "recent_attempts": self.solver.recent_attempts(),
            "settings": {
                "instant_mode": self.config.instant_mode,
                "think_before_answer": self.config.think_before_answer,
                "web_search": self.config.web_search,
                "log_level": self.config.log_level,
            },
        }


class ControlPayload(BaseModel):
    """Body of mutating requests; secret is required only when configured"""
    secret: Optional[str] = None


class NavigatePayload(ControlPayload):
    url: HttpUrl


class SettingsPayload(ControlPayload):
    instant_mode: Optional[bool] = None
    think_before_answer: Optional[bool] = None
    web_search: Optional[bool] = None
    log_level: Optional[str] = None


def _check_secret(runtime: SolverRuntime, payload: Optional[ControlPayload]):
    expected = runtime.config.control_secret
    if not expected:
        return
    if payload is None or payload.secret != expected:
        logger.error("[API_ERROR] Invalid secret value")
        raise HTTPException(status_code=403, detail="Invalid secret")


def create_app(runtime: Optional[SolverRuntime] = None) -> FastAPI:
    """
    Build the API

    Args:
        runtime: Pre-built runtime (tests); when None one is created from the
            environment and its browser is started/stopped with the app
    """
    owns_runtime = runtime is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        rt = runtime or SolverRuntime(SolverConfig.from_env())
        setup_logging(rt.config.log_level, rt.config.log_history_limit)
        if owns_runtime:
            await rt.open()
        app.state.runtime = rt
        logger.info("[API] Homework solver ready")
        yield
        rt.scheduler.stop()
        if owns_runtime:
            await rt.close()

    app = FastAPI(title="Homework Solver API", lifespan=lifespan)
    if runtime is not None:
        app.state.runtime = runtime

    def get_runtime(request: Request) -> SolverRuntime:
        return request.app.state.runtime

    @app.exception_handler(BrowserNotStarted)
    async def browser_not_started_handler(request: Request, exc: BrowserNotStarted):
        return JSONResponse(status_code=503, content={"status": "error", "message": str(exc)})

    @app.get("/")
    async def root():
        """Root endpoint with API info"""
        return {
            "name": "Homework Solver API",
            "version": "1.0",
            "endpoints": {
                "POST /start": "Start the solve loop",
                "POST /stop": "Stop the solve loop",
                "POST /solve-once": "Run a single solve cycle (re-solves answered questions)",
                "POST /skip": "Skip the current question",
                "POST /clear": "Clear all answers on the page",
                "POST /navigate": "Open an assignment URL",
                "PATCH /settings": "Toggle instant mode / think-before-answer / web search / log level",
                "GET /status": "Scheduler counters, solver status, recent attempts",
                "GET /logs": "Recent log records",
                "GET /health": "Health check",
            },
        }

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {"status": "ok", "service": "Homework Solver API"}

    @app.get("/status")
    async def status(request: Request):
        return get_runtime(request).status()

    @app.get("/logs")
    async def logs(limit: int = Query(100, ge=1)):
        history = log_history.history_handler.history()
        return {"count": len(history), "records": history[-limit:]}

    @app.post("/start")
    async def start(request: Request, payload: Optional[ControlPayload] = None):
        rt = get_runtime(request)
        _check_secret(rt, payload)
        if not rt.session.started:
            raise BrowserNotStarted("Browser session has not been started")
        if rt.cycle_running:
            raise HTTPException(status_code=409, detail="A solve cycle is in progress")
        rt.scheduler.start()
        rt.solver.status = "Running"
        logger.info("[API] Scheduler start requested")
        return {"status": "ok", "scheduler": rt.scheduler.to_dict()}

    @app.post("/stop")
    async def stop(request: Request, payload: Optional[ControlPayload] = None):
        rt = get_runtime(request)
        _check_secret(rt, payload)
        rt.scheduler.stop()
        rt.solver.status = "Stopped"
        return {"status": "ok", "scheduler": rt.scheduler.to_dict()}

    @app.post("/solve-once")
    async def solve_once(request: Request, payload: Optional[ControlPayload] = None):
        rt = get_runtime(request)
        _check_secret(rt, payload)
        if rt.scheduler.active:
            raise HTTPException(status_code=409, detail="Scheduler is running; stop it first")
        if rt.cycle_running:
            raise HTTPException(status_code=409, detail="A solve cycle is in progress")
        try:
            outcome = await rt.run_cycle(include_solved=True)
        except (CompletionError, httpx.HTTPError) as e:
            logger.error(f"[API_ERROR] Completion call failed: {e}")
            raise HTTPException(status_code=502, detail=f"Completion call failed: {e}")
        return {"status": "ok", "outcome": outcome.value, "solver_status": rt.solver.status}

    @app.post("/skip")
    async def skip(request: Request, payload: Optional[ControlPayload] = None):
        rt = get_runtime(request)
        _check_secret(rt, payload)
        skipped = await rt.solver.skip_current_question()
        return {"status": "ok" if skipped else "error", "skipped": skipped}

    @app.post("/clear")
    async def clear(request: Request, payload: Optional[ControlPayload] = None):
        rt = get_runtime(request)
        _check_secret(rt, payload)
        await rt.solver.clear_answers()
        return {"status": "ok", "solver_status": rt.solver.status}

    @app.post("/navigate")
    async def navigate(request: Request, payload: NavigatePayload):
        rt = get_runtime(request)
        _check_secret(rt, payload)
        await rt.session.navigate(str(payload.url))
        return {"status": "ok", "url": str(payload.url)}

    @app.patch("/settings")
    async def update_settings(request: Request, payload: SettingsPayload):
        rt = get_runtime(request)
        _check_secret(rt, payload)
        if payload.log_level is not None:
            try:
                set_level(payload.log_level)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            rt.config.log_level = payload.log_level.upper()
        for name in ("instant_mode", "think_before_answer", "web_search"):
            value = getattr(payload, name)
            if value is not None:
                setattr(rt.config, name, value)
                logger.info(f"[SETTINGS] {name} toggled: {'ON' if value else 'OFF'}")
        return {"status": "ok", "settings": rt.status()["settings"]}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
