"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from staffdesk.api.v1.endpoints import admin, auth, health, user

api_router = APIRouter()

# Auth (login, logout, current principal)
api_router.include_router(auth.router)

# Employee management & leave decisions
api_router.include_router(admin.router)

# Self-service attendance, leave & profile
api_router.include_router(user.router)

api_router.include_router(health.router)
