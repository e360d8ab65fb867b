"""Aggregate API router for the FastAPI application."""

from fastapi import APIRouter

from app.api.routes import providers, questions, users

api_router = APIRouter()
api_router.include_router(questions.router)
api_router.include_router(users.router)
api_router.include_router(providers.router)
