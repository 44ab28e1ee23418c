"""FastAPI application factory."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from zkfill import __version__
from zkfill.config.schema import ZkFillConfig
from zkfill.maker.service import MakerService
from zkfill.server.routes import create_router


def create_app(config: ZkFillConfig, service: MakerService | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config: zkfill configuration
        service: Maker service to expose; built from *config* when omitted

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="zkfill maker",
        description="Fill authorization for hidden-parameter limit orders",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    router = create_router(config, service)
    app.include_router(router)

    return app
