import pybreaker
import redis
from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.services.circuit_breaker import PAYMENT_PROCESSOR, get_circuit_breaker


router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Liveness probe."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(response: Response, db: Session = Depends(get_db)) -> dict:
    """
    Readiness probe: 503 when the database or Redis is unreachable.
    An open payment breaker is reported but does not fail readiness:
    browsing works without the processor.
    """
    try:
        db.execute(text("SELECT 1"))
        redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        redis_client.ping()
    except Exception as e:
        response.status_code = 503
        return {"status": "not_ready", "error": str(e)}

    breaker = get_circuit_breaker(PAYMENT_PROCESSOR)
    return {
        "status": "ready",
        "payments": "unavailable" if breaker.current_state == pybreaker.STATE_OPEN else "ok",
    }
