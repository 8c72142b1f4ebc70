# bookverse/main.py
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .catalog import CatalogStore, catalog_router
from .catalog.errors import CatalogError, invalid_field_error
from .config import Settings, get_settings


logger = logging.getLogger(__name__)

INTERNAL_ERROR = {"error": "Internal server error", "code": "internal", "field": None}


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="BookVerse API",
        description=(
            "Bookstore catalogue backend: authors, books, users, categories, "
            "publishers, reviews, orders and coupons stored in a single JSON "
            "document."
        ),
        version="1.0.0",
    )
    app.state.store = CatalogStore(settings.data_file)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CatalogError)
    async def catalog_error_handler(request: Request, exc: CatalogError):
        if exc.status_code >= 500:
            # Already logged where it happened; don't leak the detail.
            return JSONResponse(status_code=exc.status_code, content=INTERNAL_ERROR)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        error = invalid_field_error(exc.errors())
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=INTERNAL_ERROR)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    app.include_router(catalog_router)

    # Mounted last so the API routes take precedence over "/".
    if settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")
    else:
        logger.debug("Static directory %s not found, not serving files", settings.static_dir)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logger.info("BookVerse backend listening on port %s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)
