"""
FastAPI app factory for the phone process.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Build the phone controller and its WebSocket transport (once per process)
- Start / stop the controller with the app lifespan
- Register routes
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.transport.websocket_server import WebSocketServerTransport
from config import AppConfig
from observability import logger
from session.controllers import PhoneController

from server.routes import register_routes


def create_app(config: AppConfig | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with different configurations
    - Environment-specific setup
    - ASGI server compatibility
    """
    if config is None:
        config = AppConfig.load_from_env()

    logger.configure(log_level=config.log_level, enable_json_logs=config.enable_json_logs)

    transport = WebSocketServerTransport()
    phone = build_phone_controller(config=config, transport=transport)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await phone.start()
        try:
            yield
        finally:
            await phone.shutdown()

    app = FastAPI(title="Pickleball Scorekeeper Phone", lifespan=lifespan)

    app.state.config = config
    app.state.transport = transport
    app.state.phone = phone

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app


def build_phone_controller(
    *,
    config: AppConfig,
    transport: WebSocketServerTransport,
) -> PhoneController:
    """Build the authoritative controller with settings from config."""
    return PhoneController(
        transport=transport,
        reply_timeout_ms=config.reply_timeout_ms,
        sync_application_context=config.sync_application_context,
    )
