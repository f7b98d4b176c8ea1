# -*- coding: utf-8 -*-
"""HTTP adapter: decode requests for the core and render its results."""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from starlette.background import BackgroundTask
from starlette.responses import FileResponse, JSONResponse

from .__meta__ import __version__
from .config import Config
from .digest import HashFactory, hash_factory as default_hash_factory
from .errors import ContentStoreError, NotFoundError
from .forms import MultipartParts
from .ingest import IngestionCoordinator, UploadTask
from .repository import ContentRepository
from .staging import StagingArea

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("contentstore.access")


async def release_upload(upload: UploadTask) -> None:
    """Wait for part tasks still running after the response was sent."""
    await upload.join()


def error_response(exc: ContentStoreError, **kwargs) -> JSONResponse:
    return JSONResponse({"kind": exc.kind, "message": exc.message},
                        status_code=exc.status_code,
                        **kwargs)


def create_app(config: Optional[Config] = None,
               hash_factory: Optional[HashFactory] = None) -> FastAPI:
    """Build the content store application.

    Args:
        config: Service settings. Defaults to :meth:`Config.from_env`.
        hash_factory: Callable returning a fresh hash strategy per part.
            Defaults to the factory for ``config.algorithm``.

    Raises:
        ConfigurationError: If the settings or `hash_factory` are invalid.
    """
    config = (config or Config.from_env()).resolved()

    if hash_factory is None:
        hash_factory = default_hash_factory(config.algorithm)

    repository = ContentRepository(config.storage_root)
    staging = StagingArea(repository,
                          config.tmp_root,
                          encoding=config.encoding,
                          fmode=config.fmode)
    coordinator = IngestionCoordinator(staging, hash_factory)

    @asynccontextmanager
    async def lifespan(app):
        logger.info("%s storing objects in %s", config.name, repository.root)
        yield
        await coordinator.drain()
        repository.close()

    app = FastAPI(title=config.name, version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.repository = repository
    app.state.coordinator = coordinator

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        t0 = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            dt = (time.perf_counter() - t0) * 1000
            access_logger.error("%s %s -> ERR in %.1fms",
                                request.method, request.url.path, dt)
            raise

        dt = (time.perf_counter() - t0) * 1000
        access_logger.info("%s %s %d %.1fms",
                           request.method, request.url.path,
                           response.status_code, dt)
        return response

    @app.exception_handler(ContentStoreError)
    async def handle_store_error(request: Request, exc: ContentStoreError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return error_response(exc)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s",
                         request.method, request.url.path)
        return JSONResponse({"kind": "InternalServerError",
                             "message": "Unexpected error occurred"},
                            status_code=500)

    @app.get("/")
    def index():
        return {"result": f"Hi, this is a {config.name}. "
                          "Use POST /upload to feed me with files."}

    @app.get("/health")
    def health():
        return {"result": "OK, healthy."}

    @app.post("/upload")
    async def upload(request: Request):
        task = coordinator.begin(MultipartParts(request))
        cleanup = BackgroundTask(release_upload, task)

        try:
            result = await task.result()
        except ContentStoreError as exc:
            logger.error("Upload failed: %s", exc)
            return error_response(exc, background=cleanup)

        return JSONResponse(
            {"result": result.status,
             "files": [[name, digest] for name, digest in result.files]},
            status_code=201 if result.stored else 200,
            background=cleanup,
        )

    @app.get("/{digest}")
    def download(digest: str):
        if not repository.exists(digest):
            raise NotFoundError(f"Could not locate object: {digest}")

        return FileResponse(repository.path(digest),
                            media_type="application/octet-stream")

    @app.delete("/{digest}")
    def delete(digest: str):
        repository.delete(digest)
        return {"result": "deleted", "digest": digest}

    return app
