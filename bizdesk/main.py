import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bizdesk.auth.deps import close_upstream_client
from bizdesk.config import settings
from bizdesk.middleware.exceptions import register_exception_handlers
from bizdesk.routers import health, modules, packages, permission_groups, permissions, roles
from bizdesk.utils.cache import close_redis

logger = logging.getLogger("bizdesk")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release the upstream HTTP pool and the Redis pool on shutdown."""
    logger.info(f"BizDesk starting in {settings.mode} mode")
    yield
    await close_upstream_client()
    await close_redis()


app = FastAPI(
    title="BizDesk",
    description="Role & permission authorization service for the BizDesk business client",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(permissions.router, prefix="/api/permissions", tags=["permissions"])
app.include_router(roles.router, prefix="/api/roles", tags=["roles"])
app.include_router(modules.router, prefix="/api/modules", tags=["modules"])
app.include_router(permission_groups.router, prefix="/api/permission-groups", tags=["permission-groups"])
app.include_router(packages.router, prefix="/api/packages", tags=["packages"])
