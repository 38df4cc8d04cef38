from fastapi import APIRouter
from leave_engine.routers import leave, leave_admin

# Centralized API router hub
# Routers are aggregated here, and main.py only imports this single hub.
# leave_admin goes first: its fixed paths (/leaves/types, ...) must win
# over the /leaves/{request_id} route.
api_router = APIRouter()

api_router.include_router(leave_admin.router, tags=["Leave Administration"])
api_router.include_router(leave.router, tags=["Leave"])
