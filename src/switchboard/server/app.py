"""FastAPI application exposing sessions over WebSocket plus a few JSON routes."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from switchboard import __version__, auth
from switchboard.config.models import SwitchboardConfig
from switchboard.coordinator import SessionCoordinator
from switchboard.mcp import get_all_mcp_servers
from switchboard.multiplexer import OutputMultiplexer
from switchboard.registry import SessionRegistry
from switchboard.server.websocket import router as websocket_router

logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


def create_app(
    config: SwitchboardConfig | None = None,
    coordinator: SessionCoordinator | None = None,
) -> FastAPI:
    """Build the app.  Live sessions are cancelled when the app shuts down."""
    config = config if config is not None else SwitchboardConfig()
    if coordinator is None:
        coordinator = SessionCoordinator(SessionRegistry(), OutputMultiplexer(), config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        logger.info("shutting down: cancelling %d live session(s)",
                    len(coordinator.live_sessions()))
        await coordinator.shutdown()

    app = FastAPI(title="switchboard", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.coordinator = coordinator
    app.state.auth_strategies = auth.build_strategies(
        config.auth.strategies, config.auth.timeout
    )
    app.include_router(websocket_router)

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "version": __version__}

    @app.get("/api/sessions")
    async def sessions(request: Request) -> dict[str, Any]:
        return {"sessions": request.app.state.coordinator.live_sessions()}

    @app.get("/api/mcp/servers")
    async def mcp_servers() -> dict[str, Any]:
        return get_all_mcp_servers().to_dict()

    @app.get("/api/auth/status")
    async def auth_status() -> dict[str, Any]:
        return {"needsSetup": False, "authAvailable": auth.is_available()}

    @app.post("/api/auth/login")
    async def login(body: LoginRequest, request: Request) -> dict[str, Any]:
        if not body.username or not body.password:
            raise HTTPException(
                status_code=400, detail="Username and password are required"
            )
        if not auth.is_available():
            raise HTTPException(
                status_code=501,
                detail="System authentication is not available on this host",
            )
        ok = await auth.authenticate(
            body.username, body.password, request.app.state.auth_strategies
        )
        if not ok:
            raise HTTPException(status_code=401, detail="Invalid username or password")

        info = await auth.get_user_info(body.username, timeout=config.auth.timeout)
        return {
            "success": True,
            "user": {
                "username": body.username,
                "userInfo": info.to_dict() if info is not None else None,
            },
        }

    return app
