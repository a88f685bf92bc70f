from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import logging

from config import get_settings
from database import Base, engine
from logging_config import configure_logging
from api import players, rounds, websocket
from core.broadcast import ConnectionHub
from core.player_registry import PlayerRegistry
from core.round_lifecycle import RoundLifecycle
from services.settlement_client import SettlementClient, SettlementService

logger = logging.getLogger(__name__)


def create_app(settlement: Optional[SettlementService] = None) -> FastAPI:
    """
    建立 FastAPI app

    參數：
        settlement: 結算服務（測試時注入 fake，預設使用 HTTP client）
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: 建立封存表、外部服務 client、回合生命週期
        settings = get_settings()
        configure_logging(settings.log_level)
        Base.metadata.create_all(bind=engine)

        client = settlement
        owns_client = client is None
        if owns_client:
            client = SettlementClient(
                settings.settlement_base_url,
                timeout=settings.settlement_timeout,
            )
            await client.start()

        hub = ConnectionHub(send_timeout=settings.send_timeout)
        app.state.hub = hub
        app.state.lifecycle = RoundLifecycle(
            registry=PlayerRegistry(),
            gateway=hub,
            settlement=client,
            settings=settings,
        )
        logger.info(f"Pot game server ready (round={settings.round_duration}s, pots={settings.pot_labels})")
        yield
        # Shutdown: 取消所有計時器，關閉 HTTP client
        await app.state.lifecycle.shutdown()
        if owns_client:
            await client.close()

    app = FastAPI(
        title="Pot Game API",
        description="Real-time multiplayer pot betting rounds",
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
    app.include_router(players.router)
    app.include_router(rounds.router)
    app.include_router(websocket.router)

    @app.get("/")
    def root():
        return {"message": "Pot Game API", "status": "ok"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
