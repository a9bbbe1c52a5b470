import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from capital.core.cache import RedisCache
from capital.core.config import require_jwt_secret, settings
from capital.core.database import SessionLocal
from capital.dependencies.auth import AuthenticationRejected
from capital.routes.authentication import router as authentication_router
from capital.routes.dashboard import router as dashboard_router
from capital.routes.users import router as users_router
from capital.services.economy import EconomyService, EconomyStore
from capital.services.market_data import MarketDataClient
from capital.services.sessions import clear_session

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

require_jwt_secret()


@asynccontextmanager
async def lifespan(app: FastAPI):
    cache = RedisCache(settings.REDIS_URL, socket_timeout=settings.REDIS_SOCKET_TIMEOUT)
    http = httpx.AsyncClient(timeout=settings.EXTERNAL_FETCH_TIMEOUT_SECONDS)

    app.state.cache = cache
    app.state.economy = EconomyService(cache, EconomyStore(SessionLocal), MarketDataClient(http))
    logger.info("Startup config: ENV=%s cors_origins=%d", settings.ENV, len(settings.CORS_ORIGINS))
    try:
        yield
    finally:
        await http.aclose()
        await cache.close()


app = FastAPI(title="Capital", lifespan=lifespan)

_ERROR_CODE_BY_STATUS: dict[int, str] = {
    302: "ALREADY_AUTHENTICATED",
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
}


def _error_code(status_code: int) -> str:
    return _ERROR_CODE_BY_STATUS.get(int(status_code), "HTTP_ERROR")


def _with_pending_clear(request: Request, response: JSONResponse) -> JSONResponse:
    # Set by the anonymous-only dependency on a malformed access token; its own
    # Response headers are dropped once the route raises.
    if getattr(request.state, "clear_session", False):
        clear_session(response)
    return response


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException):
    detail = exc.detail
    message: str
    errors: dict | None = None

    if isinstance(detail, str):
        message = detail
    elif isinstance(detail, dict):
        # HTTPException(detail={"message": "...", "errors": {"field": "..."}})
        msg = detail.get("message")
        message = msg if isinstance(msg, str) and msg else "Request failed"
        err = detail.get("errors")
        errors = err if isinstance(err, dict) else None
    else:
        message = str(detail) if detail is not None else "Request failed"

    payload: dict = {"error": _error_code(exc.status_code), "message": message}
    if errors:
        payload["errors"] = errors
    return _with_pending_clear(
        request,
        JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers),
    )


@app.exception_handler(AuthenticationRejected)
def authentication_rejected_handler(request: Request, exc: AuthenticationRejected):  # noqa: ARG001
    payload: dict = {"error": _error_code(exc.status_code), "message": exc.message}
    if exc.refreshable:
        payload["refreshable"] = True

    response = JSONResponse(status_code=exc.status_code, content=payload)
    if exc.clear_cookies:
        clear_session(response)
    return response


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors: dict[str, str] = {}
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        message = str(err.get("msg", "Invalid value")).removeprefix("Value error, ")
        # First message per field
        errors.setdefault(field, message)

    return _with_pending_clear(
        request,
        JSONResponse(
            status_code=400,
            content={
                "error": "VALIDATION_ERROR",
                "message": "Invalid request payload",
                "errors": errors,
            },
        ),
    )


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_ERROR", "message": "Internal Server Error"},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(authentication_router)
app.include_router(users_router)
app.include_router(dashboard_router)


@app.get("/api/v1/health")
def health_check():
    return {"status": "ok"}
