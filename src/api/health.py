"""Health check endpoint."""

from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.db.database import get_db

router = APIRouter()


@router.get("/health")
def health_check(request: Request, db: Session = Depends(get_db)) -> dict[str, Any]:
    """Return database status plus the active capacity policy."""
    status: dict[str, Any] = {"status": "ok", "database": "connected"}
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        status = {"status": "error", "database": "disconnected"}

    service = getattr(request.app.state, "inventory_service", None)
    if service is not None:
        status["enforce_mode"] = service.enforce_mode.value
        status["include_nested"] = service.include_nested
        status["unit"] = service.unit
    relay = getattr(request.app.state, "notice_relay", None)
    if relay is not None:
        status["relay"] = relay.name
    return status
