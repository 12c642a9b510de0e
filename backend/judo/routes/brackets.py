"""
Bracket (tableau) API Routes
Principal / consolante / bronze trees: creation, mat assignment, scoring
from finished bouts, manual override and winner advancement.

Bronze matches are addressed with phase "bronze".
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session

from judo.config import TournamentConfig, get_config
from judo.database import get_session
from judo.models.bracket import BracketMatch
from judo.services import bracket_service
from judo.services.broadcast import EVENT_BRACKET, EVENT_MATS, BroadcastHub, get_hub

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class BracketCreateRequest(BaseModel):
    principal: List[str]
    consolante: Optional[List[str]] = None
    seed: Optional[int] = None


class BracketAssignRequest(BaseModel):
    mat_id: int


class BracketOverrideRequest(BaseModel):
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    vainqueur: Optional[str] = None


class BracketMatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bracket_type: str
    phase: str
    match_number: int
    equipe_a: Optional[str] = None
    equipe_b: Optional[str] = None
    score_a: int
    score_b: int
    vainqueur: Optional[str] = None
    has_bye: bool
    description: Optional[str] = None
    bout_ids: List[int]
    assigned: bool
    mat_id: Optional[int] = None
    date_assignation: Optional[datetime] = None
    date_fin_match: Optional[datetime] = None


def _serialize(match: BracketMatch) -> BracketMatchResponse:
    return BracketMatchResponse.model_validate(match)


def _tag(match: BracketMatch) -> dict:
    return {"bracket_type": match.bracket_type, "phase": match.phase, "match_number": match.match_number}


# ============================================================================
# Bracket Endpoints
# ============================================================================


@router.get("/brackets")
def get_brackets(session: Session = Depends(get_session)):
    view = bracket_service.list_brackets(session)
    return {
        "principal": {phase: [_serialize(m) for m in rows] for phase, rows in view["principal"].items()},
        "consolante": {phase: [_serialize(m) for m in rows] for phase, rows in view["consolante"].items()},
        "bronze": [_serialize(m) for m in view["bronze"]],
    }


@router.post("/brackets", status_code=201)
def create_brackets(
    payload: BracketCreateRequest,
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    """Replace the brackets with freshly drawn principal and consolante trees."""
    result = bracket_service.create_brackets(session, payload.principal, payload.consolante, payload.seed)
    hub.publish(EVENT_BRACKET, {"action": "create"})
    return {"success": True, **result}


@router.delete("/brackets")
def reset_brackets(
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    count = bracket_service.reset_brackets(session)
    hub.publish(EVENT_BRACKET, {"action": "reset"})
    return {"success": True, "deleted": count}


@router.get("/brackets/{bracket_type}/{phase}/{match_number}", response_model=BracketMatchResponse)
def get_match(bracket_type: str, phase: str, match_number: int, session: Session = Depends(get_session)):
    return _serialize(bracket_service.get_match(session, bracket_type, phase, match_number))


@router.patch("/brackets/{bracket_type}/{phase}/{match_number}", response_model=BracketMatchResponse)
def override_match(
    bracket_type: str,
    phase: str,
    match_number: int,
    payload: BracketOverrideRequest,
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    """Manual score / winner entry."""
    match = bracket_service.get_match(session, bracket_type, phase, match_number)
    match = bracket_service.override_match(session, match, payload.score_a, payload.score_b, payload.vainqueur)
    hub.publish(EVENT_BRACKET, _tag(match))
    return _serialize(match)


@router.post("/brackets/{bracket_type}/{phase}/{match_number}/assign")
def assign_match(
    bracket_type: str,
    phase: str,
    match_number: int,
    payload: BracketAssignRequest,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    match = bracket_service.get_match(session, bracket_type, phase, match_number)
    result = bracket_service.assign_match(session, match, payload.mat_id, config)
    hub.publish(EVENT_BRACKET, _tag(match))
    hub.publish(EVENT_MATS, {"mat_id": payload.mat_id})
    return {
        "success": True,
        "combats_crees": result["combats_crees"],
        "bout_ids": result["bout_ids"],
        "match": _serialize(match),
    }


@router.post("/brackets/{bracket_type}/{phase}/{match_number}/score")
def recompute_match_score(
    bracket_type: str,
    phase: str,
    match_number: int,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    """Recount bout wins; decides the match once all its bouts are finished."""
    match = bracket_service.get_match(session, bracket_type, phase, match_number)
    result = bracket_service.recompute_match(session, match, config)
    hub.publish(EVENT_BRACKET, _tag(match))
    return result


@router.post("/brackets/{bracket_type}/{phase}/{match_number}/advance")
def advance_match(
    bracket_type: str,
    phase: str,
    match_number: int,
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    match = bracket_service.get_match(session, bracket_type, phase, match_number)
    result = bracket_service.advance_winner(session, match)
    hub.publish(EVENT_BRACKET, _tag(match))
    return {"success": True, **result}
