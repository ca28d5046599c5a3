import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.database import engine
from app.middleware import RequestIDLogFilter, RequestIDMiddleware
from app.routers.news import router as news_router
from app.services.cache import close_redis, init_redis
from app.services.news import NewsNotFound, PublishStateConflict

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s",
)
for handler in logging.getLogger().handlers:
    handler.addFilter(RequestIDLogFilter())

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_redis()
    yield
    await close_redis()
    await engine.dispose()


app = FastAPI(title="News Article Service", lifespan=lifespan)

app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(news_router)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        # drop the "body"/"query"/"path" prefix
        field = ".".join(str(part) for part in loc[1:]) or ".".join(str(part) for part in loc)
        errors.append({"field": field, "message": err.get("msg", "Invalid value")})
    return _error(status.HTTP_400_BAD_REQUEST, "Validation failed", errors=errors)


@app.exception_handler(NewsNotFound)
async def news_not_found_handler(request: Request, exc: NewsNotFound):
    return _error(status.HTTP_404_NOT_FOUND, "News article not found")


@app.exception_handler(PublishStateConflict)
async def publish_state_conflict_handler(request: Request, exc: PublishStateConflict):
    return _error(
        status.HTTP_400_BAD_REQUEST,
        "Validation failed",
        errors=[{"field": exc.field, "message": str(exc)}],
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Store error on %s %s", request.method, request.url.path)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@app.get("/health")
async def health():
    return {"status": "ok"}
