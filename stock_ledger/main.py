"""
Stock Ledger API

FastAPI application exposing companies, stock imports and price reports.
Errors are rendered as {"message": ...} bodies, with an "errors" map for
validation failures:

    {"message": "The to field must be ...", "errors": {"to": ["The to field must be ..."]}}
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from stock_ledger.exceptions import ImportDispatchError, RequestValidationFailed, StorageError
from stock_ledger.routers import auth, companies, stock_imports, stock_prices
from stock_ledger.utils.logger import create_logger

logger = create_logger(__name__)

app = FastAPI(
    title="Stock Ledger",
    description="Historical stock price imports and performance reporting.",
    version="1.0.0",
)

app.include_router(auth.router)
app.include_router(companies.router)
app.include_router(stock_prices.router)
app.include_router(stock_imports.router)


def _field_name(location) -> str:
    # ("query", "to") -> "to"; ("body", "periods", 0) -> "periods.0"
    parts = [str(part) for part in location if part not in ("body", "query", "path", "header", "form")]
    return ".".join(parts) or "request"


@app.exception_handler(RequestValidationFailed)
async def request_validation_failed_handler(request: Request, exc: RequestValidationFailed):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"message": exc.message, "errors": exc.errors},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        errors.setdefault(_field_name(error.get("loc", ())), []).append(error.get("msg", "Invalid value."))

    failure = RequestValidationFailed(errors)
    return await request_validation_failed_handler(request, failure)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"message": str(exc)},
    )


@app.exception_handler(ImportDispatchError)
async def import_dispatch_error_handler(request: Request, exc: ImportDispatchError):
    logger.error(f"Import dispatch error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"message": "Unable to queue the stock import."},
    )


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok"}
