"""API router - aggregates all routes served under /api."""

from fastapi import APIRouter

from app.api import auth

# Main API router - all routes will be prefixed with /api
api_router = APIRouter(prefix="/api")

api_router.include_router(auth.router)
