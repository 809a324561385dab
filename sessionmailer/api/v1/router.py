from fastapi import APIRouter

from sessionmailer.api.v1 import sessions

api_router = APIRouter(prefix="/v1")

api_router.include_router(sessions.router, prefix="/sessions", tags=["Sessions"])
