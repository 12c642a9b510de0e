"""
Roster API Routes
Teams and athletes: CRUD, validation against the configured weight
categories, and per-team / per-athlete statistics.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session, or_, select

from judo.config import TournamentConfig, get_config
from judo.database import get_session
from judo.errors import Conflict, InvalidArgument
from judo.models.athlete import Athlete
from judo.models.bout import Bout
from judo.models.team import Team
from judo.services import standings_service
from judo.services.broadcast import EVENT_ATHLETES, EVENT_TEAMS, BroadcastHub, get_hub

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class TeamCreateRequest(BaseModel):
    id: str
    name: str
    color: Optional[str] = None


class TeamUpdateRequest(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None


class TeamScoreRequest(BaseModel):
    points: int = 0
    victoire: int = 0


class AthleteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    sex: str
    weight: str
    team_id: str
    created_at: datetime


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    color: str
    points: int
    victoires: int
    score_global: int
    created_at: datetime


class TeamDetailResponse(TeamResponse):
    athletes: List[AthleteResponse] = []


class AthleteCreateRequest(BaseModel):
    name: str
    sex: str
    weight: str
    team_id: str


class AthleteUpdateRequest(BaseModel):
    name: Optional[str] = None
    sex: Optional[str] = None
    weight: Optional[str] = None
    team_id: Optional[str] = None


def _get_team(session: Session, team_id: str) -> Team:
    team = session.get(Team, team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


def _get_athlete(session: Session, athlete_id: int) -> Athlete:
    athlete = session.get(Athlete, athlete_id)
    if not athlete:
        raise HTTPException(status_code=404, detail="Athlete not found")
    return athlete


def _validate_category(sex: str, weight: str, config: TournamentConfig) -> None:
    if sex not in config.combattants.categories_poids:
        raise InvalidArgument(f"Invalid sex: {sex!r}", {"allowed": list(config.combattants.categories_poids)})
    allowed = config.combattants.categories_for(sex)
    if weight not in allowed:
        raise InvalidArgument(f"Invalid weight category {weight!r} for sex {sex}", {"allowed": allowed})


def _check_roster_cap(session: Session, team_id: str, config: TournamentConfig) -> None:
    count = len(session.exec(select(Athlete).where(Athlete.team_id == team_id)).all())
    if count >= config.combattants.max_combattants_par_equipe:
        raise Conflict(
            f"Team {team_id} already has {count} athletes",
            {"max": config.combattants.max_combattants_par_equipe},
        )


# ============================================================================
# Team Endpoints
# ============================================================================


@router.get("/teams", response_model=List[TeamResponse])
def list_teams(session: Session = Depends(get_session)):
    return session.exec(select(Team).order_by(Team.id)).all()


@router.post("/teams", response_model=TeamResponse, status_code=201)
def create_team(
    payload: TeamCreateRequest,
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    team_id = payload.id.strip()
    name = payload.name.strip()
    if not team_id or not name:
        raise InvalidArgument("Team id and name are required")
    if session.get(Team, team_id):
        raise Conflict(f"Team {team_id} already exists")

    team = Team(id=team_id, name=name, color=payload.color or "primary")
    session.add(team)
    session.commit()
    session.refresh(team)
    hub.publish(EVENT_TEAMS, {"action": "create", "equipe_id": team.id})
    return team


@router.get("/teams/{team_id}", response_model=TeamDetailResponse)
def get_team(team_id: str, session: Session = Depends(get_session)):
    return TeamDetailResponse.model_validate(_get_team(session, team_id))


@router.patch("/teams/{team_id}", response_model=TeamResponse)
def update_team(
    team_id: str,
    payload: TeamUpdateRequest,
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    team = _get_team(session, team_id)
    if payload.name is not None:
        if not payload.name.strip():
            raise InvalidArgument("Team name cannot be empty")
        team.name = payload.name.strip()
    if payload.color is not None:
        team.color = payload.color
    session.add(team)
    session.commit()
    session.refresh(team)
    hub.publish(EVENT_TEAMS, {"action": "update", "equipe_id": team.id})
    return team


@router.patch("/teams/{team_id}/score", response_model=TeamResponse)
def add_team_score(
    team_id: str,
    payload: TeamScoreRequest,
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    """Add points / wins to a team's cumulative counters."""
    team = _get_team(session, team_id)
    team.points = (team.points or 0) + payload.points
    team.victoires = (team.victoires or 0) + payload.victoire
    session.add(team)
    session.commit()
    session.refresh(team)
    hub.publish(EVENT_TEAMS, {"action": "score", "equipe_id": team.id, "points": team.points})
    return team


@router.delete("/teams/{team_id}")
def delete_team(
    team_id: str,
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    team = _get_team(session, team_id)
    owned = session.exec(select(Athlete).where(Athlete.team_id == team_id)).first()
    if owned:
        raise Conflict(f"Team {team_id} still has athletes")
    session.delete(team)
    session.commit()
    hub.publish(EVENT_TEAMS, {"action": "delete", "equipe_id": team_id})
    return {"success": True, "deleted": team_id}


@router.get("/teams/{team_id}/stats")
def get_team_stats(
    team_id: str,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
):
    return standings_service.team_stats(session, team_id, config)


# ============================================================================
# Athlete Endpoints
# ============================================================================


@router.get("/athletes", response_model=List[AthleteResponse])
def list_athletes(
    team_id: Optional[str] = Query(None),
    weight: Optional[str] = Query(None),
    sex: Optional[str] = Query(None),
    session: Session = Depends(get_session),
):
    query = select(Athlete)
    if team_id:
        query = query.where(Athlete.team_id == team_id)
    if weight:
        query = query.where(Athlete.weight == weight)
    if sex:
        query = query.where(Athlete.sex == sex)
    return session.exec(query.order_by(Athlete.id)).all()


@router.post("/athletes", response_model=AthleteResponse, status_code=201)
def create_athlete(
    payload: AthleteCreateRequest,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    if not payload.name.strip():
        raise InvalidArgument("Athlete name is required")
    _validate_category(payload.sex, payload.weight, config)
    _get_team(session, payload.team_id)
    _check_roster_cap(session, payload.team_id, config)

    athlete = Athlete(name=payload.name.strip(), sex=payload.sex, weight=payload.weight, team_id=payload.team_id)
    session.add(athlete)
    session.commit()
    session.refresh(athlete)
    hub.publish(EVENT_ATHLETES, {"action": "create", "athlete_id": athlete.id})
    return athlete


@router.get("/athletes/{athlete_id}", response_model=AthleteResponse)
def get_athlete(athlete_id: int, session: Session = Depends(get_session)):
    return _get_athlete(session, athlete_id)


@router.patch("/athletes/{athlete_id}", response_model=AthleteResponse)
def update_athlete(
    athlete_id: int,
    payload: AthleteUpdateRequest,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
    hub: BroadcastHub = Depends(get_hub),
):
    athlete = _get_athlete(session, athlete_id)
    sex = payload.sex if payload.sex is not None else athlete.sex
    weight = payload.weight if payload.weight is not None else athlete.weight
    _validate_category(sex, weight, config)
    if payload.team_id is not None and payload.team_id != athlete.team_id:
        _get_team(session, payload.team_id)
        _check_roster_cap(session, payload.team_id, config)
        athlete.team_id = payload.team_id
    if payload.name is not None:
        if not payload.name.strip():
            raise InvalidArgument("Athlete name cannot be empty")
        athlete.name = payload.name.strip()
    athlete.sex = sex
    athlete.weight = weight
    session.add(athlete)
    session.commit()
    session.refresh(athlete)
    hub.publish(EVENT_ATHLETES, {"action": "update", "athlete_id": athlete.id})
    return athlete


@router.delete("/athletes/{athlete_id}")
def delete_athlete(
    athlete_id: int,
    session: Session = Depends(get_session),
    hub: BroadcastHub = Depends(get_hub),
):
    athlete = _get_athlete(session, athlete_id)
    referenced = session.exec(
        select(Bout).where(or_(Bout.rouge_athlete_id == athlete_id, Bout.bleu_athlete_id == athlete_id))
    ).first()
    if referenced:
        raise Conflict(f"Athlete {athlete_id} is referenced by bout {referenced.id}")
    session.delete(athlete)
    session.commit()
    hub.publish(EVENT_ATHLETES, {"action": "delete", "athlete_id": athlete_id})
    return {"success": True, "deleted": athlete_id}


@router.get("/athletes/{athlete_id}/stats")
def get_athlete_stats(
    athlete_id: int,
    session: Session = Depends(get_session),
    config: TournamentConfig = Depends(get_config),
):
    _get_athlete(session, athlete_id)
    return standings_service.athlete_stats(session, athlete_id, config)
