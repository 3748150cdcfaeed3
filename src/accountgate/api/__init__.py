"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Health, signup/login/refresh/switch/logout are open — they carry
their own credentials (password or refresh token) in the request. Routes
that act as a signed-in user pull the access token through
get_current_user themselves.
"""

from fastapi import APIRouter

from accountgate.api.accounts import router as accounts_router
from accountgate.api.auth import router as auth_router
from accountgate.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(accounts_router, tags=["accounts"])
