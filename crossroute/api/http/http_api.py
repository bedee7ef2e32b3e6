from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request

from crossroute.api.models import BridgeIntentModel, RoutesResponse, ScoredRouteModel, TransactionRecordModel
from crossroute.core.service import BridgeService
from crossroute.logging.logger import get_logger

router = APIRouter()
log = get_logger(__name__)


def get_bridge_service(request: Request) -> BridgeService:
    return request.app.state.bridge_service


@router.get("/api/health", tags=["health"])  # type: ignore[misc]
async def get_health(service: BridgeService = Depends(get_bridge_service)) -> Dict[str, Any]:
    """
    Report service health and the providers currently wired in.

    Returns:
        A payload with the provider names, the number of tracked transfers and a UTC timestamp.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "providers": [adapter.name for adapter in service.adapters],
        "tracked_transactions": len(service.tracker.all_records()),
    }


@router.post("/api/routes", response_model=RoutesResponse, tags=["routes"])  # type: ignore[misc]
async def post_routes(
        payload: BridgeIntentModel,
        service: BridgeService = Depends(get_bridge_service),
) -> RoutesResponse:
    """Aggregate quotes for an intent and return them scored, best first."""
    log.info("[HTTP][ROUTES] %s->%s %s %s", payload.source_chain, payload.destination_chain, payload.amount,
             payload.token)
    routes = await service.quote(payload.to_intent())
    return RoutesResponse(routes=[ScoredRouteModel.from_scored(route) for route in routes])


@router.get("/api/transactions/{tx_hash}", response_model=TransactionRecordModel, tags=["transactions"])  # type: ignore[misc]
async def get_transaction(tx_hash: str, service: BridgeService = Depends(get_bridge_service)) -> TransactionRecordModel:
    """Return the tracked record with its latest settlement status."""
    record = service.tracker.get(tx_hash)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Transaction {tx_hash} is not tracked")
    return TransactionRecordModel.from_record(record)


@router.get("/api/wallets/{address}/pending", response_model=List[TransactionRecordModel], tags=["transactions"])  # type: ignore[misc]
async def get_pending_transactions(
        address: str,
        service: BridgeService = Depends(get_bridge_service),
) -> List[TransactionRecordModel]:
    """List the wallet's transfers that have not reached a terminal status."""
    return [TransactionRecordModel.from_record(record) for record in service.tracker.pending_for(address)]


@router.delete("/api/transactions/{tx_hash}/monitor", tags=["transactions"])  # type: ignore[misc]
async def delete_monitor(tx_hash: str, service: BridgeService = Depends(get_bridge_service)) -> Dict[str, Any]:
    """Stop polling a transfer; its last observed status is kept."""
    if not service.tracker.cancel(tx_hash):
        raise HTTPException(status_code=404, detail=f"Transaction {tx_hash} is not tracked")
    record = service.tracker.get(tx_hash)
    log.info("[HTTP][MONITOR][CANCEL] tx=%s", tx_hash)
    return {"cancelled": True, "status": record.status.value if record is not None else None}
