"""
Clock API Router.

백엔드 → 시계 서버 웹훅과 시계 상태 조회 엔드포인트.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from pokerclock.logging_config import get_logger
from pokerclock.utils.errors import ClockError

from .engine import ClockEngine
from .models import ControlEvent
from .schemas import WebhookControlRequest, WebhookEmitRequest

logger = get_logger(__name__)


def get_engine(request: Request) -> ClockEngine:
    """Clock engine of the running application."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Clock engine not initialized",
        )
    return engine


# =============================================================================
# Webhooks (backend -> clock server)
# =============================================================================

webhook_router = APIRouter(prefix="/api/webhook", tags=["Webhook"])


@webhook_router.post("/emit")
async def emit(
    body: WebhookEmitRequest,
    engine: ClockEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """Relay an arbitrary event to a tournament channel."""
    if not body.tournament_id or not body.event:
        logger.warning("Webhook emit rejected: tournamentId and event are required")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="tournamentId and event are required",
        )

    logger.info(f"Webhook relay: '{body.event}' -> tournament {body.tournament_id}")
    delivered = await engine.gateway.publish(body.tournament_id, body.event, body.data)
    return {"success": True, "delivered": delivered}


@webhook_router.post("/control")
async def control(
    body: WebhookControlRequest,
    engine: ClockEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """
    백엔드에서 이미 반영된 제어 명령을 시계에 적용.

    - start/resume: data에 startTime + levels가 있으면 그대로 시드, 없으면 재조회
    - pause/finish: 백엔드로 PATCH를 되돌려 보내지 않음
    """
    event = ControlEvent(
        tournament_id=body.tournament_id,
        type=body.type,
        data=body.data or {},
    )
    try:
        record = await engine.commands.apply(event, relayed=True)
    except ClockError as e:
        logger.warning(f"Webhook control rejected: {e.code} {e.message}")
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())

    return {
        "success": True,
        "tournamentId": body.tournament_id,
        "type": body.type.value,
        "running": engine.registry.has(body.tournament_id),
        "clock": record.to_dict() if record else None,
    }


# =============================================================================
# Clock status
# =============================================================================

clock_router = APIRouter(prefix="/api/clock", tags=["Clock"])


@clock_router.get("")
async def clock_status(engine: ClockEngine = Depends(get_engine)) -> Dict[str, Any]:
    """스케줄러 상태 (모니터링용)."""
    return engine.scheduler.get_status()


@clock_router.get("/{tournament_id}")
async def tournament_clock(
    tournament_id: str,
    engine: ClockEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """Current derived state of one running clock."""
    record = engine.registry.get(tournament_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Clock not running"
        )

    state = engine.scheduler.current_state(tournament_id)
    return {
        **record.to_dict(),
        "state": state.to_dict() if state else None,
    }
