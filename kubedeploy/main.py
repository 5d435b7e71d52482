#!/usr/bin/env python3
"""
Kubedeploy - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Initializes modules
3. Runs the API server

All business logic is in the modules, following black box principles.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import pydantic
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from kubedeploy import __version__
from kubedeploy.config.provider import ConfigProvider, EnvConfigProvider
from kubedeploy.logging_config import configure_logging, get_logging_config
from kubedeploy.modules.api import APIError, respond_error
from kubedeploy.modules.api.deployments import create_deployment_router
from kubedeploy.modules.api.errors import classify_gateway_error
from kubedeploy.modules.gateway import GatewayError, ResourceGateway

logger = logging.getLogger("kubedeploy.main")


def create_app(
    gateway: Optional[ResourceGateway] = None,
    config_provider: Optional[ConfigProvider] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        gateway: Resource gateway to use; when None a Kubernetes gateway is
            built from configuration at startup
        config_provider: Configuration source (default: environment)
    """
    config_provider = config_provider or EnvConfigProvider()
    api_config = config_provider.get_api_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manage application lifecycle - initialize and cleanup resources.
        """
        logger.info("Starting Kubedeploy API...")

        owned_gateway = None
        if app.state.gateway is None:
            # Imported here so the kubernetes client only loads credentials when needed
            from kubedeploy.modules.gateway.k8s import KubernetesGateway

            owned_gateway = KubernetesGateway.from_config(
                config_provider.get_kubernetes_config(),
                config_provider.get_stream_config(),
            )
            app.state.gateway = owned_gateway
            logger.info("Kubernetes gateway initialized")

        logger.info("Kubedeploy API started successfully")

        yield

        logger.info("Shutting down Kubedeploy API...")
        if owned_gateway is not None:
            owned_gateway.close()
            app.state.gateway = None
        logger.info("Kubedeploy API shutdown complete")

    app = FastAPI(
        title="Kubedeploy API",
        description="Kubedeploy - Kubernetes Deployment management and live change feed",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=api_config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(create_deployment_router(config_provider))

    @app.get("/healthz")
    async def healthz():
        """
        Minimal health check endpoint for Kubernetes readiness/liveness probes.

        Returns:
            200: Service is running
        """
        return {"status": "ok"}

    # Error handlers

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        """Render taxonomy errors raised by handlers."""
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return respond_error(exc.status_code, exc.message)

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        """Handle gateway failures that escaped a handler."""
        error = classify_gateway_error(exc, "complete request")
        logger.error(f"{request.method} {request.url.path} gateway error: {exc!r}")
        return respond_error(error.status_code, error.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Handle malformed request bodies and parameters."""
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        return respond_error(400, f"Invalid request: {details}")

    @app.exception_handler(pydantic.ValidationError)
    async def serialization_error_handler(request: Request, exc: pydantic.ValidationError):
        """Handle objects from the cluster that do not fit the read models."""
        logger.error(f"Failed to serialize response for {request.url.path}: {exc}")
        return respond_error(500, "Failed to serialize response")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        """Render framework errors (404 routes, 405, 503) in the error envelope."""
        return respond_error(exc.status_code, str(exc.detail))

    return app


app = create_app()


def main() -> None:
    """Run the API server."""
    api_config = EnvConfigProvider().get_api_config()
    configure_logging(api_config.log_level)
    uvicorn.run(
        "kubedeploy.main:app",
        host=api_config.host,
        port=api_config.port,
        log_level=api_config.log_level.lower(),
        reload=api_config.debug,
        log_config=get_logging_config(api_config.log_level),
    )


if __name__ == "__main__":
    main()
