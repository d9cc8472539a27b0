"""
共用的 FastAPI dependencies
"""
from fastapi import Request

from core.round_coordinator import RoundCoordinator
from database import Settings, get_settings


def get_coordinator(request: Request) -> RoundCoordinator:
    """在 app lifespan 中建立的 coordinator（見 main.create_app）"""
    return request.app.state.coordinator


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()
