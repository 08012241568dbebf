# main.py
import logging
import routes
from contextlib import asynccontextmanager
from util.enums import Environment, Color, ErrorMessage
from fastapi import Depends, FastAPI, Request
from starlette.datastructures import Headers
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send
from config.settings import settings
from config.upstreams import GatewayConfig, get_gateway_config, warn_missing_credentials
from controller.controller_dependencies import get_gateway
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from model.api import HealthResponse
from util.constants import InternalURIs
from util.errors import AppError
from util.logger import init_logger
from util.timing import timed

logger = logging.getLogger(__name__)


class RequestLogMiddleware:
    """One "http.request.done" line per inbound request: method, path, origin, status."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        origin = Headers(scope=scope).get("origin")
        with timed(
            logger,
            "http.request",
            method=scope["method"],
            path=scope["path"],
            origin=origin,
        ) as fields:

            async def send_logged(message: Message) -> None:
                if message["type"] == "http.response.start":
                    fields["status"] = message["status"]
                await send(message)

            await self.app(scope, receive, send_logged)


@asynccontextmanager
async def lifespan(fastApi: FastAPI):
    init_logger()
    print(f"{Color.GREEN}Initializing...{Color.RESET}")
    warn_missing_credentials(get_gateway_config())
    print(f"{Color.BLUE}Server Started{Color.RESET}")
    try:
        yield
    finally:
        print(f"{Color.RED}Server Shutdown{Color.RESET}")


app: FastAPI = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.ALLOWED_ORIGIN],
    allow_credentials=settings.ALLOWED_ORIGIN != "*",
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
)
app.add_middleware(RequestLogMiddleware)


@app.get(InternalURIs.HEALTH, response_model=HealthResponse)
async def healthz(config: GatewayConfig = Depends(get_gateway)) -> HealthResponse:
    return HealthResponse(
        ok=True,
        environment=settings.APP_ENV,
        apis={family.value: up.configured for family, up in config.upstreams.items()},
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.warning(
            "request.failed path=%s status=%s error=%s",
            request.url.path,
            exc.status_code,
            exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request parameters",
            "details": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(404)
async def not_found_handler(request: Request, exc: Exception):
    # Status handlers win over class handlers, so relayed upstream 404s land here too
    if isinstance(exc, AppError):
        return await app_error_handler(request, exc)
    return JSONResponse(
        status_code=404,
        content={
            "error": "Resource not found",
            "path": request.url.path,
            "method": request.method,
            "availableEndpoints": [
                InternalURIs.TRIPO,
                InternalURIs.MESHY,
                InternalURIs.HEALTH,
            ],
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("request.crashed path=%s", request.url.path)
    return JSONResponse(
        status_code=ErrorMessage.INTERNAL_ERROR.value.http_status,
        content={"error": ErrorMessage.INTERNAL_ERROR.value.message},
    )


routes.register_routes(app)

if __name__ == "__main__":
    import uvicorn

    reload = settings.APP_ENV == Environment.DEV
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=reload)
