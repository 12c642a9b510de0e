"""
Standings API Routes
General ranking across pools and per-pool rankings.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session, select

from judo.config import TournamentConfig, get_config
from judo.database import get_session
from judo.models.pool import Pool
from judo.services import standings_service
from judo.services.broadcast import EVENT_STANDINGS, BroadcastHub, get_hub

router = APIRouter()


class StandingRow(BaseModel):
    rang: int
    equipe_id: str
    name: str
    color: Optional[str] = None
    points: int
    victoires: int
    defaites: int
    egalites: int
    confrontations: int
    points_marques: int
    points_encaisses: int
    differentiel: int
    pools: List[str] = []


@router.get("/standings", response_model=List[StandingRow])
def general_standings(session: Session = Depends(get_session)):
    """Sum of the stored pool rankings; teams without a confrontation are omitted."""
    ranking = standings_service.compute_general_standings(session)
    return [StandingRow(rang=i, **r.to_dict()) for i, r in enumerate(ranking, start=1)]


@router.post("/standings/recompute", response_model=List[StandingRow])
def recompute_all_standings(
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    """Recompute every pool ranking, then return the general ranking."""
    pool_ids = [p.id for p in session.exec(select(Pool).order_by(Pool.id)).all()]
    for pool_id in pool_ids:
        standings_service.compute_pool_standings(session, pool_id, config)
    ranking = standings_service.compute_general_standings(session)
    hub.publish(EVENT_STANDINGS, {"pool_ids": pool_ids})
    return [StandingRow(rang=i, **r.to_dict()) for i, r in enumerate(ranking, start=1)]


@router.get("/standings/pools")
def pool_standings(session: Session = Depends(get_session)):
    pools = session.exec(select(Pool).order_by(Pool.id)).all()
    return [
        {"pool_id": p.id, "name": p.name, "classement": p.classement, "derniere_mise_a_jour": p.derniere_mise_a_jour}
        for p in pools
    ]
