"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from src.api.health import router as health_router
from src.api.inventory import router as inventory_router
from src.config import settings
from src.core.event_bus import EventBus
from src.core.logging import get_logger, setup_logging
from src.db.database import SessionLocal, engine as db_engine
from src.db.models import Base
from src.services.inventory_service import InventoryService
from src.services.relay import get_relay

setup_logging(settings.LOG_LEVEL, settings.LOG_BUFFER_LIMIT)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # DB 테이블 생성
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=db_engine)
    logger.info("Database tables created.")

    # EventBus + Relay
    event_bus = EventBus()
    relay = get_relay(event_bus)
    app.state.event_bus = event_bus
    app.state.notice_relay = relay
    logger.info("Notice relay initialized: %s", relay.name)

    # InventoryService 초기화
    logger.info("Initializing InventoryService...")
    db_session = SessionLocal()
    inventory_service = InventoryService(db=db_session, event_bus=event_bus, relay=relay)
    app.state.inventory_service = inventory_service
    logger.info(
        "InventoryService initialized (mode=%s, nested=%s, unit=%s).",
        inventory_service.enforce_mode.value,
        inventory_service.include_nested,
        inventory_service.unit,
    )

    yield

    # 종료 시 정리
    logger.info("Shutting down...")
    event_bus.clear()
    db_session.close()


app = FastAPI(title="Weighty Containers", lifespan=lifespan)

app.include_router(health_router)
app.include_router(inventory_router)
