"""
Bout runtime API: scoring, osaekomi, corrections, clock and state changes.
Each mutating call commits through services.bout_runtime, then publishes the
enriched bout (and, after a finish, the cascaded updates) to live displays.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session, select

from judo.config import TournamentConfig, get_config
from judo.database import get_session
from judo.models.bout import Bout
from judo.services import bout_runtime
from judo.services.bout_generation import create_bout, generate_team_bouts
from judo.services.bout_runtime import RuntimeResult
from judo.services.broadcast import (
    EVENT_BOUT_FINISHED,
    EVENT_BOUTS,
    EVENT_BRACKET,
    EVENT_MATS,
    EVENT_POOLS,
    EVENT_STANDINGS,
    BroadcastHub,
    get_hub,
)
from judo.services.enrichment import BoutView, enrich_bouts, enrich_one, public_bout

router = APIRouter()


class BoutCreateRequest(BaseModel):
    rouge_athlete_id: int
    bleu_athlete_id: int


class GenerateBoutsRequest(BaseModel):
    equipe_a: str
    equipe_b: str


class MarkPointRequest(BaseModel):
    side: str
    type: str


class OsaekomiStartRequest(BaseModel):
    side: str


class OsaekomiStopRequest(BaseModel):
    duration: Optional[float] = None


class CorrectionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    side: str
    operation: str
    type: Optional[str] = None
    source: Optional[str] = Field(default=None, alias="from")
    target: Optional[str] = Field(default=None, alias="to")


class StateRequest(BaseModel):
    etat: str


class TimerRequest(BaseModel):
    timer: int


class RuntimeResponse(BaseModel):
    bout: BoutView
    finished: bool = False
    points_awarded: List[str] = []
    pools_updated: List[int] = []
    bracket_matches_updated: List[int] = []
    mats_updated: List[int] = []


def _respond(
    session: Session, result: RuntimeResult, config: TournamentConfig, hub: BroadcastHub
) -> RuntimeResponse:
    view = enrich_one(session, result.bout, config.combat)
    response = RuntimeResponse(
        bout=view,
        finished=result.finished,
        points_awarded=result.points_awarded,
        pools_updated=result.effects.pool_ids,
        bracket_matches_updated=result.effects.bracket_match_ids,
        mats_updated=result.effects.mat_ids,
    )

    hub.publish(EVENT_BOUTS, {"mat_id": view.mat_id, "bout": view})
    if result.finished:
        hub.publish(EVENT_BOUT_FINISHED, {"mat_id": view.mat_id, "bout": view, "vainqueur": view.vainqueur})
    if result.effects.pool_ids:
        hub.publish(EVENT_POOLS, {"pool_ids": result.effects.pool_ids})
        hub.publish(EVENT_STANDINGS, {"pool_ids": result.effects.pool_ids})
    if result.effects.bracket_match_ids:
        hub.publish(EVENT_BRACKET, {"match_ids": result.effects.bracket_match_ids})
    for mat_id in result.effects.mat_ids:
        hub.publish(EVENT_MATS, {"mat_id": mat_id})
    return response


# ============================================================================
# Listing / creation
# ============================================================================


@router.get("/bouts", response_model=List[BoutView])
def list_bouts(
    etat: Optional[str] = Query(None),
    mat_id: Optional[int] = Query(None),
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
):
    query = select(Bout)
    if etat:
        query = query.where(Bout.etat == etat)
    if mat_id is not None:
        query = query.where(Bout.mat_id == mat_id)
    return enrich_bouts(session, session.exec(query.order_by(Bout.id)).all(), config.combat)


@router.get("/bouts/public")
def list_public_bouts(
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
):
    """Spectator projection of every bout."""
    bouts = session.exec(select(Bout).order_by(Bout.id)).all()
    return [public_bout(v) for v in enrich_bouts(session, bouts, config.combat)]


@router.post("/bouts", response_model=BoutView, status_code=201)
def create_single_bout(
    payload: BoutCreateRequest,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    bout = create_bout(session, payload.rouge_athlete_id, payload.bleu_athlete_id, config)
    view = enrich_one(session, bout, config.combat)
    hub.publish(EVENT_BOUTS, {"action": "create", "bout": view})
    return view


@router.post("/bouts/generate", response_model=List[BoutView], status_code=201)
def generate_bouts(
    payload: GenerateBoutsRequest,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    """One bout per weight category both teams cover."""
    bouts = generate_team_bouts(session, payload.equipe_a, payload.equipe_b, config)
    views = enrich_bouts(session, bouts, config.combat)
    hub.publish(EVENT_BOUTS, {"action": "generate", "bout_ids": [b.id for b in bouts]})
    return views


@router.get("/bouts/{bout_id}", response_model=BoutView)
def get_bout(
    bout_id: int,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
):
    return enrich_one(session, bout_runtime.get_bout(session, bout_id), config.combat)


@router.get("/bouts/{bout_id}/public")
def get_public_bout(
    bout_id: int,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
):
    return public_bout(enrich_one(session, bout_runtime.get_bout(session, bout_id), config.combat))


@router.delete("/bouts/{bout_id}")
def delete_bout(
    bout_id: int,
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    bout_runtime.delete_bout(session, bout_id)
    hub.publish(EVENT_BOUTS, {"action": "delete", "bout_id": bout_id})
    return {"success": True, "deleted": bout_id}


# ============================================================================
# Scoring
# ============================================================================


@router.post("/bouts/{bout_id}/points", response_model=RuntimeResponse)
def mark_point(
    bout_id: int,
    payload: MarkPointRequest,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    """Record a score or a shido. A shido is charged to the side given."""
    result = bout_runtime.score_point(session, bout_id, payload.side, payload.type, config)
    return _respond(session, result, config, hub)


@router.post("/bouts/{bout_id}/osaekomi/start", response_model=BoutView)
def start_osaekomi(
    bout_id: int,
    payload: OsaekomiStartRequest,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    bout = bout_runtime.start_osaekomi(session, bout_id, payload.side)
    view = enrich_one(session, bout, config.combat)
    hub.publish(EVENT_BOUTS, {"mat_id": view.mat_id, "bout": view})
    return view


@router.post("/bouts/{bout_id}/osaekomi/stop", response_model=RuntimeResponse)
def stop_osaekomi(
    bout_id: int,
    payload: OsaekomiStopRequest,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    result = bout_runtime.stop_osaekomi(session, bout_id, payload.duration, config)
    return _respond(session, result, config, hub)


@router.post("/bouts/{bout_id}/corrections", response_model=RuntimeResponse)
def apply_correction(
    bout_id: int,
    payload: CorrectionRequest,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    result = bout_runtime.correct(
        session, bout_id, payload.side, payload.operation, payload.type, payload.source, payload.target, config
    )
    return _respond(session, result, config, hub)


@router.post("/bouts/{bout_id}/reset", response_model=BoutView)
def reset_bout(
    bout_id: int,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    bout = bout_runtime.reset(session, bout_id, config)
    view = enrich_one(session, bout, config.combat)
    hub.publish(EVENT_BOUTS, {"mat_id": view.mat_id, "bout": view})
    return view


# ============================================================================
# Clock / state
# ============================================================================


@router.patch("/bouts/{bout_id}/state", response_model=RuntimeResponse)
def change_state(
    bout_id: int,
    payload: StateRequest,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    result = bout_runtime.change_state(session, bout_id, payload.etat, config)
    return _respond(session, result, config, hub)


@router.patch("/bouts/{bout_id}/timer", response_model=RuntimeResponse)
def update_timer(
    bout_id: int,
    payload: TimerRequest,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    result = bout_runtime.update_timer(session, bout_id, payload.timer, config)
    return _respond(session, result, config, hub)
