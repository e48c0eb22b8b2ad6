import logging
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from chiffrage.core.exceptions import ChiffrageError, ErrCode

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    ErrCode.MISSING_HIERARCHY_LEVEL: 422,
    ErrCode.ANCESTOR_NOT_FOUND: 422,
    ErrCode.STRUCTURAL_NOT_FOUND: 404,
    ErrCode.LABEL_CONFLICT: 409,
    ErrCode.INVALID_NAME: 422,
    ErrCode.AMBIGUOUS_LABEL: 409,
}


async def chiffrage_error_handler(request: Request, exc: ChiffrageError) -> JSONResponse:
    status_code = STATUS_BY_CODE.get(exc.code, 500)
    if status_code >= 500:
        logger.error("Erreur non prévue sur %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code.value, "ctx": jsonable_encoder(exc.ctx)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ChiffrageError, chiffrage_error_handler)
