"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter, so every route in the users and tasks routers
passes the access-token gate before its handler runs. Handlers that
need the user declare Depends(get_current_user) again — FastAPI caches
it per request, so the gate only runs once. Health and auth routers are
open (logout declares its own dependency).
"""

from fastapi import APIRouter, Depends

from purposelog.api.auth import router as auth_router
from purposelog.api.health import router as health_router
from purposelog.api.tasks import router as tasks_router
from purposelog.api.users import router as users_router
from purposelog.auth.dependencies import get_current_user
from purposelog.config import settings

_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix=settings.api_prefix)

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes — require a valid accessToken cookie
api_router.include_router(users_router, tags=["users"], dependencies=_auth)
api_router.include_router(tasks_router, tags=["tasks"], dependencies=_auth)
