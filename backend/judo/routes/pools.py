"""
Pool (poule) API Routes
Bulk creation, rencontre assignment to mats, results and standings recompute.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session, select

from judo.config import TournamentConfig, get_config
from judo.database import get_session
from judo.models.pool import Pool
from judo.services import bout_generation, mat_sequencer, standings_service
from judo.services.broadcast import EVENT_MATS, EVENT_POOLS, EVENT_STANDINGS, BroadcastHub, get_hub

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class PoolCreateRequest(BaseModel):
    count: int = 1
    seed: Optional[int] = None


class AssignRequest(BaseModel):
    mat_id: int


class RencontreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    pool_id: int
    equipe_a: str
    equipe_b: str
    bout_ids: List[int]
    etat: str


class PoolResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    team_ids: List[str]
    classement: List[Dict[str, Any]]
    derniere_mise_a_jour: Optional[datetime] = None
    rencontres: List[RencontreResponse] = []


def _get_pool(session: Session, pool_id: int) -> Pool:
    pool = session.get(Pool, pool_id)
    if not pool:
        raise HTTPException(status_code=404, detail="Pool not found")
    return pool


# ============================================================================
# Pool Endpoints
# ============================================================================


@router.get("/pools", response_model=List[PoolResponse])
def list_pools(session: Session = Depends(get_session)):
    pools = session.exec(select(Pool).order_by(Pool.id)).all()
    return [PoolResponse.model_validate(p) for p in pools]


@router.post("/pools", response_model=List[PoolResponse], status_code=201)
def create_pools(
    payload: PoolCreateRequest,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    """Replace all pools: teams are shuffled then dealt round-robin."""
    pools = bout_generation.create_pools(session, payload.count, payload.seed, config)
    hub.publish(EVENT_POOLS, {"action": "create", "pool_ids": [p.id for p in pools]})
    return [PoolResponse.model_validate(p) for p in pools]


@router.delete("/pools")
def delete_pools(
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    count = bout_generation.delete_pools(session)
    hub.publish(EVENT_POOLS, {"action": "delete"})
    return {"success": True, "deleted": count}


@router.get("/pools/confrontations/live")
def live_confrontations(session: Session = Depends(get_session)):
    """Team pairing currently on each mat."""
    return mat_sequencer.live_confrontations(session)


@router.get("/pools/{pool_id}", response_model=PoolResponse)
def get_pool(pool_id: int, session: Session = Depends(get_session)):
    return PoolResponse.model_validate(_get_pool(session, pool_id))


@router.post("/pools/{pool_id}/standings", response_model=PoolResponse)
def recompute_pool_standings(
    pool_id: int,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    pool = standings_service.compute_pool_standings(session, pool_id, config)
    hub.publish(EVENT_STANDINGS, {"pool_ids": [pool.id]})
    return PoolResponse.model_validate(pool)


@router.get("/pools/{pool_id}/rencontres/{rencontre_id}/result")
def get_rencontre_result(
    pool_id: int,
    rencontre_id: int,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
):
    rencontre = bout_generation.get_rencontre(session, pool_id, rencontre_id)
    return standings_service.rencontre_result(session, rencontre, config)


@router.post("/pools/{pool_id}/rencontres/{rencontre_id}/assign", response_model=RencontreResponse)
def assign_rencontre(
    pool_id: int,
    rencontre_id: int,
    payload: AssignRequest,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    """Generate the rencontre's bouts and queue them on a mat."""
    rencontre, mat = bout_generation.assign_rencontre(session, pool_id, rencontre_id, payload.mat_id, config)
    hub.publish(EVENT_POOLS, {"pool_ids": [pool_id]})
    hub.publish(EVENT_MATS, {"mat_id": mat.id})
    return RencontreResponse.model_validate(rencontre)
