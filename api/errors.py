"""Exception handlers for the FastAPI app"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from core.errors import ImageStoreError, InvalidTargetError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ImageStoreError)
    async def image_store_error_handler(
        request: Request, exc: ImageStoreError
    ) -> JSONResponse:
        if not isinstance(exc, InvalidTargetError):
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        body = exc.to_response_body()
        if isinstance(exc, InvalidTargetError):
            body["notice"] = exc.notice
        return JSONResponse(status_code=exc.status_code, content=body)
