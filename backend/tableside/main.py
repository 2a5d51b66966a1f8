"""
Session core API.
Entry point for the FastAPI server.

    uvicorn tableside.main:app --app-dir backend --port 8000
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from shared.security.rate_limit import limiter, rate_limit_exceeded_handler
from shared.utils.exceptions import AppException
from tableside.core.cors import configure_cors
from tableside.core.lifespan import lifespan
from tableside.core.middlewares import register_middlewares
from tableside.routers import admin_router, health_router, orders_router, sessions_router, tables_router


def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render every domain error as {"detail", "kind"}. Already logged when raised."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "kind": exc.kind},
        headers=exc.headers,
    )


app = FastAPI(
    title="Tableside Session Core",
    description="Table sessions, join codes, order attribution and access policy",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_exception_handler(AppException, app_exception_handler)

register_middlewares(app)
configure_cors(app)

app.include_router(health_router)
app.include_router(sessions_router)
app.include_router(tables_router)
app.include_router(orders_router)
app.include_router(admin_router)
