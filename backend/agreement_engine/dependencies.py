"""
Agreement Engine - FastAPI Dependencies
Accessors for the singletons wired onto app.state at startup
"""
from fastapi import Request

from .config import Settings
from .services.discount_check import DiscountCheckService
from .services.orchestration import JobOrchestrator
from .services.rendering import DownloadTokenStore
from .services.store import PersistentStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_orchestrator(request: Request) -> JobOrchestrator:
    return request.app.state.orchestrator


def get_discount_checks(request: Request) -> DiscountCheckService:
    return request.app.state.discount_checks


def get_store(request: Request) -> PersistentStore:
    return request.app.state.store


def get_downloads(request: Request) -> DownloadTokenStore:
    return request.app.state.downloads
