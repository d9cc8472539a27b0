from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import logging

from database import Base, SessionLocal, Settings, engine, get_settings
from core.broadcast_hub import BroadcastHub
from core.round_coordinator import RoundCoordinator
from core.timer import TimerDriver
from api import bets, periods, players, websocket


def build_coordinator(settings: Settings) -> RoundCoordinator:
    return RoundCoordinator(
        session_factory=SessionLocal,
        hub=BroadcastHub(),
        timer=TimerDriver(),
        settings=settings
    )


def create_app(
    coordinator: Optional[RoundCoordinator] = None,
    settings: Optional[Settings] = None,
    bind=None
) -> FastAPI:
    """
    建立 application

    測試會傳入自己的 coordinator（手動計時器、固定時鐘）以及
    其 session factory 綁定的 engine
    """
    settings = settings or (coordinator.settings if coordinator else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: 建立資料庫表，再啟動期數生命週期
        Base.metadata.create_all(bind=bind or engine)
        app.state.coordinator = coordinator or build_coordinator(settings)
        app.state.settings = settings
        app.state.coordinator.start()
        yield
        # Shutdown: 取消待執行的期數計時器
        app.state.coordinator.stop()

    app = FastAPI(
        title="Color Lottery API",
        description="Timed color/number lottery rounds with real-time period feed",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure this properly in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(periods.router)
    app.include_router(bets.router)
    app.include_router(players.router)
    app.include_router(websocket.router)

    @app.get("/")
    def root():
        return {"message": "Color Lottery API", "status": "ok"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
