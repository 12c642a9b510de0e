"""
Mat (tatami) API Routes
Queue management: assignment, pointer moves, state, release and history.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session, select

from judo.config import TournamentConfig, get_config
from judo.database import get_session
from judo.errors import Conflict
from judo.models.mat import Mat
from judo.services import mat_sequencer
from judo.services.broadcast import EVENT_MATS, BroadcastHub, get_hub
from judo.services.enrichment import BoutView

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class MatCreateRequest(BaseModel):
    name: Optional[str] = None


class MatStateRequest(BaseModel):
    etat: str


class MatAssignRequest(BaseModel):
    bout_ids: List[int]


class MatResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    etat: str
    bout_ids: List[int]
    index_combat_actuel: int
    score_confrontation: Dict[str, int]
    created_at: datetime


class MatDetailResponse(MatResponse):
    historique: List[Dict[str, Any]] = []
    combat_actuel: Optional[BoutView] = None
    progression: Dict[str, int] = {}


class MatMoveResponse(BaseModel):
    mat: MatResponse
    combat_actuel: Optional[BoutView] = None


class MatAssignResponse(BaseModel):
    mat: MatResponse
    assigned_count: int


def _detail(session: Session, mat: Mat, config: TournamentConfig) -> MatDetailResponse:
    detail = MatDetailResponse.model_validate(mat)
    detail.combat_actuel = mat_sequencer.current_bout(session, mat, config)
    total = len(mat.bout_ids or [])
    detail.progression = {"actuel": mat.index_combat_actuel + 1 if total else 0, "total": total}
    return detail


# ============================================================================
# Mat Endpoints
# ============================================================================


@router.get("/mats", response_model=List[MatResponse])
def list_mats(session: Session = Depends(get_session)):
    return [MatResponse.model_validate(m) for m in session.exec(select(Mat).order_by(Mat.id)).all()]


@router.post("/mats", response_model=MatResponse, status_code=201)
def create_mat(
    payload: MatCreateRequest,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    count = len(session.exec(select(Mat)).all())
    if count >= config.tatamis.nombre_max:
        raise Conflict(f"Mat limit reached ({config.tatamis.nombre_max})")
    name = (payload.name or "").strip() or f"Tatami {count + 1}"
    mat = Mat(name=name)
    session.add(mat)
    session.commit()
    session.refresh(mat)
    hub.publish(EVENT_MATS, {"action": "create", "mat_id": mat.id})
    return MatResponse.model_validate(mat)


@router.get("/mats/{mat_id}", response_model=MatDetailResponse)
def get_mat(
    mat_id: int,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
):
    return _detail(session, mat_sequencer.get_mat(session, mat_id), config)


@router.get("/mats/{mat_id}/current", response_model=Optional[BoutView])
def get_current_bout(
    mat_id: int,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
):
    return mat_sequencer.current_bout(session, mat_sequencer.get_mat(session, mat_id), config)


@router.patch("/mats/{mat_id}/state", response_model=MatResponse)
def set_mat_state(
    mat_id: int,
    payload: MatStateRequest,
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    mat = mat_sequencer.set_state(session, mat_id, payload.etat)
    hub.publish(EVENT_MATS, {"mat_id": mat.id, "etat": mat.etat})
    return MatResponse.model_validate(mat)


@router.post("/mats/{mat_id}/assign", response_model=MatAssignResponse)
def assign_bouts(
    mat_id: int,
    payload: MatAssignRequest,
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    """Append bouts to the mat queue; the pointer goes back to the first bout."""
    mat, count = mat_sequencer.assign_bouts(session, mat_id, payload.bout_ids)
    hub.publish(EVENT_MATS, {"mat_id": mat.id, "action": "assign"})
    return MatAssignResponse(mat=MatResponse.model_validate(mat), assigned_count=count)


@router.post("/mats/{mat_id}/next", response_model=MatMoveResponse)
def next_bout(
    mat_id: int,
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    mat, current = mat_sequencer.advance(session, mat_id)
    hub.publish(EVENT_MATS, {"mat_id": mat.id, "index_combat_actuel": mat.index_combat_actuel})
    return MatMoveResponse(mat=MatResponse.model_validate(mat), combat_actuel=current)


@router.post("/mats/{mat_id}/previous", response_model=MatMoveResponse)
def previous_bout(
    mat_id: int,
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    mat, current = mat_sequencer.retreat(session, mat_id)
    hub.publish(EVENT_MATS, {"mat_id": mat.id, "index_combat_actuel": mat.index_combat_actuel})
    return MatMoveResponse(mat=MatResponse.model_validate(mat), combat_actuel=current)


@router.post("/mats/{mat_id}/release", response_model=MatResponse)
def release_mat(
    mat_id: int,
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    mat = mat_sequencer.release(session, mat_id)
    hub.publish(EVENT_MATS, {"mat_id": mat.id, "action": "release"})
    return MatResponse.model_validate(mat)


@router.post("/mats/{mat_id}/confrontation-score")
def recompute_confrontation_score(
    mat_id: int,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
):
    mat = mat_sequencer.get_mat(session, mat_id)
    return mat_sequencer.compute_confrontation_score(session, mat, config)


@router.get("/mats/{mat_id}/history")
def get_mat_history(
    mat_id: int,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
):
    mat = mat_sequencer.get_mat(session, mat_id)
    return {
        "bouts": mat_sequencer.bout_history(session, mat_id, config),
        "historique": mat.historique,
    }


@router.get("/mats/{mat_id}/availability")
def get_mat_availability(mat_id: int, session: Session = Depends(get_session)):
    mat = mat_sequencer.get_mat(session, mat_id)
    return {"mat_id": mat.id, "etat": mat.etat, "disponible": mat_sequencer.is_available(mat)}
