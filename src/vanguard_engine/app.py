"""FastAPI application factory for Vanguard-Engine."""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vanguard_engine.common.config import get_settings
from vanguard_engine.common.exceptions import RateLimitedError, VanguardError
from vanguard_engine.common.logging import get_logger, setup_logging
from vanguard_engine.common.schemas import ErrorResponse, HealthResponse

logger = get_logger("app")


async def _bootstrap_roles(db, roles) -> None:
    """Apply the permission catalog, then reconcile every tenant's default roles.

    Failures are logged; the service keeps serving with whatever roles exist.
    """
    try:
        async with db.get_session() as session:
            await roles.ensure_catalog(session)
    except Exception:
        logger.exception("Permission catalog bootstrap failed")
        return
    try:
        await roles.reconcile_all_tenants(db)
    except Exception:
        logger.exception("Default role reconciliation failed")


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from vanguard_engine.deps import get_cache, get_db, get_role_store
        db = get_db()
        await db.init()
        await db.create_all()
        sync_task = asyncio.create_task(_bootstrap_roles(db, get_role_store()))
        yield
        # Shutdown
        if not sync_task.done():
            sync_task.cancel()
        await get_cache().close()
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(VanguardError)
    async def vanguard_error_handler(request: Request, exc: VanguardError):
        headers = None
        if isinstance(exc, RateLimitedError) and exc.retry_after:
            headers = {"Retry-After": str(exc.retry_after)}
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        body = ErrorResponse(error=exc.message, code=exc.code)
        return JSONResponse(
            status_code=exc.status_code, content=body.model_dump(), headers=headers
        )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from vanguard_engine.auth.router import router as auth_router
    from vanguard_engine.rbac.router import router as roles_router
    from vanguard_engine.users.router import router as users_router
    from vanguard_engine.tenants.router import router as tenants_router
    from vanguard_engine.visitors.router import router as visitors_router
    from vanguard_engine.visits.router import router as visits_router

    prefix = settings.api_prefix
    app.include_router(auth_router, prefix=prefix, tags=["auth"])
    app.include_router(roles_router, prefix=prefix, tags=["roles"])
    app.include_router(users_router, prefix=prefix, tags=["users"])
    app.include_router(tenants_router, prefix=prefix, tags=["tenants"])
    app.include_router(visitors_router, prefix=prefix, tags=["visitors"])
    app.include_router(visits_router, prefix=prefix, tags=["visits"])

    return app
