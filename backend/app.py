"""
FastAPI application for the HeysMe backend.

Build it with create_app(); uvicorn runs it as a factory:

    uvicorn backend.app:create_app --factory --reload
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.deps import get_config
from backend.errors import register_error_handlers
from backend.routes import ROUTERS
from models.config_models import Config
from utils.config_loader import load_config
from utils.logger import setup_logger

logger = setup_logger(name=__name__)


def create_app(config: Optional[Config] = None) -> FastAPI:
    """
    Create the API app.

    Args:
        config: Configuration to serve with. Loaded from the environment
                when omitted; when given, it also replaces the get_config
                dependency so every route sees the same settings.
    """
    if config is None:
        config = load_config()
    setup_logger(config.log_level)

    app = FastAPI(
        title="HeysMe API",
        description="Backend for conversational personal page generation",
        version="1.0.0",
    )
    app.dependency_overrides[get_config] = lambda: config

    # The Next.js frontend calls the API from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app, is_development=config.is_development)
    for router in ROUTERS:
        app.include_router(router)

    logger.info(f"FastAPI app initialized ({config.environment}, {len(app.routes)} routes)")
    return app
