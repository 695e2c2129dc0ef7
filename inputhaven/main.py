import time
import uuid

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError

from inputhaven.core.config import get_settings
from inputhaven.core.exceptions import (
    AppError,
    app_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from inputhaven.core.logging import bind_request_context, configure_logging, get_logger
from inputhaven.core.redis import close_redis
from inputhaven.db.init import init_db
from inputhaven.deps import enforce_api_rate_limit
from inputhaven.routers import api_keys, cron, forms, submissions, submit

settings = get_settings()
configure_logging(debug=settings.debug)
log = get_logger(__name__)

app = FastAPI(
    title="InputHaven Submission API",
    version="1.0.0",
)


@app.middleware("http")
async def request_id_middleware(request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    bind_request_context(request_id, method=request.method, path=request.url.path)
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    log.info(
        "request",
        status_code=response.status_code,
        duration_ms=round(duration_ms, 2),
    )
    response.headers["X-Request-ID"] = request_id
    return response


app.add_exception_handler(AppError, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Routers
app.include_router(submit.router, prefix="/api/v1/submit", tags=["submit"])
app.include_router(cron.router, prefix="/api/cron", tags=["cron"])

# Management API (bearer API keys)
management = [Depends(enforce_api_rate_limit)]
app.include_router(forms.router, prefix="/api/v1/forms", tags=["forms"], dependencies=management)
app.include_router(submissions.router, prefix="/api/v1/submissions", tags=["submissions"], dependencies=management)
app.include_router(api_keys.router, prefix="/api/v1/api-keys", tags=["api-keys"], dependencies=management)


@app.on_event("startup")
async def startup():
    if settings.sentry_dsn:
        import sentry_sdk
        sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.env, traces_sample_rate=0.1)
        log.info("startup", msg="Sentry enabled")
    await init_db()
    log.info("startup", msg="DB connected")


@app.on_event("shutdown")
async def shutdown():
    await close_redis()


@app.get("/health")
async def health():
    """Health check for load balancers and monitoring."""
    return {"status": "ok"}
