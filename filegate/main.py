import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from filegate.core.config import Settings, get_settings
from filegate.core.errors import GatewayError, ValidationError
from filegate.core.logging import configure_logging
from filegate.models.database import build_engine, build_session_factory, create_tables
from filegate.routers import blobs, files, shares  # <--- important
from filegate.routers.dependencies import build_services
from filegate.stores.metadata import MetadataStore
from filegate.stores.objects import ObjectStore

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    objects: Optional[ObjectStore] = None,
    metadata: Optional[MetadataStore] = None,
) -> FastAPI:
    """
    Build the gateway. Settings are read once here and handed to the stores;
    nothing below this function looks at the environment.

    Run with: uvicorn filegate.main:create_app --factory
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    if settings.credential_signing_key.get_secret_value() == "change-me":
        logger.warning("CREDENTIAL_SIGNING_KEY is not set; issued credentials use the development key")

    if metadata is None:
        engine = build_engine(settings)
        create_tables(engine)
        metadata = MetadataStore(build_session_factory(engine))
    if objects is None:
        objects = ObjectStore.from_settings(settings)

    app = FastAPI(title="filegate")
    app.state.services = build_services(settings, metadata, objects)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        # malformed JSON / wrong shapes are client errors like any other
        first = exc.errors()[0] if exc.errors() else {}
        error = ValidationError(
            f"Invalid request: {first.get('msg', 'malformed body')}",
            details={"location": list(first.get("loc", []))},
        )
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # include our routers
    app.include_router(files.router)
    app.include_router(shares.router)
    app.include_router(blobs.router)

    logger.info("filegate ready (namespace prefix %r, shared namespace %r)",
                settings.namespace_prefix, settings.shared_namespace)
    return app
