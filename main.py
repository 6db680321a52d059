import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.dependencies import get_access_gateway, get_database
from app.api.routes.health import router as health_router
from app.api.routes.personal_credential import router as personal_credential_router
from app.api.routes.usage import router as usage_router
from app.middleware.access_gateway import AccessGatewayMiddleware
from app.services.access_gateway import AccessGateway
from app.settings import settings


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_database().setup()
    yield


def create_app(access_gateway: AccessGateway | None = None) -> FastAPI:
    configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Session gateway and usage quota metering for model calls",
        lifespan=lifespan,
    )

    app.add_middleware(
        AccessGatewayMiddleware,
        gateway=access_gateway or get_access_gateway(),
        session_cookie_name=settings.session_cookie_name,
        refresh_cookie_name=settings.refresh_cookie_name,
        secure_cookies=settings.session_cookie_secure,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(usage_router)
    app.include_router(personal_credential_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
