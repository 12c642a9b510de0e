"""
Bout enrichment: resolve a stored bout's athlete/team references into display
data and attach the current winner.

Reads roster tables once per call site (Roster.load) so listing many bouts does
not hit the database per bout. Unresolved references never raise; the values
denormalized on the bout at creation time are used instead.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel
from sqlmodel import Session, select

from judo.config import CombatConfig
from judo.models.athlete import Athlete
from judo.models.bout import Bout
from judo.models.mat import Mat
from judo.models.team import Team
from judo.services.scoreboard import BLEU, ROUGE
from judo.services.scoring_engine import determine_winner, technical_points

UNKNOWN_NAME = "Inconnu"
UNKNOWN_TEAM = "N/A"
UNKNOWN_WEIGHT = "Non défini"
UNASSIGNED_MAT = "Non assigné"


class BoutSideView(BaseModel):
    athlete_id: Optional[int] = None
    name: str
    team_id: Optional[str] = None
    team_name: str
    weight: str
    sex: Optional[str] = None
    ippon: bool = False
    wazari: int = 0
    yuko: int = 0
    shido: int = 0
    points: int = 0


class BoutView(BaseModel):
    id: int
    etat: str
    timer: Optional[int] = None
    mat_id: Optional[int] = None
    mat_name: str = UNASSIGNED_MAT
    rouge: BoutSideView
    bleu: BoutSideView
    osaekomi_actif: bool = False
    osaekomi_cote: Optional[str] = None
    osaekomi_debut: Optional[datetime] = None
    date_creation: Optional[datetime] = None
    date_fin: Optional[datetime] = None
    raison_fin: Optional[str] = None
    vainqueur: Optional[str] = None


@dataclass
class Roster:
    """Preloaded teams, athletes and mats keyed by id."""

    teams: Dict[str, Team] = field(default_factory=dict)
    athletes: Dict[int, Athlete] = field(default_factory=dict)
    mats: Dict[int, Mat] = field(default_factory=dict)

    @classmethod
    def load(cls, session: Session) -> "Roster":
        return cls(
            teams={t.id: t for t in session.exec(select(Team)).all()},
            athletes={a.id: a for a in session.exec(select(Athlete)).all()},
            mats={m.id: m for m in session.exec(select(Mat)).all()},
        )

    def mat_for(self, bout: Bout) -> Optional[Mat]:
        if bout.mat_id is not None and bout.mat_id in self.mats:
            return self.mats[bout.mat_id]
        for mat in self.mats.values():
            if bout.id in (mat.bout_ids or []):
                return mat
        return None


def side_team_id(bout: Bout, side: str, roster: Roster) -> Optional[str]:
    """Team currently owning the athlete on ``side``, else the denormalized team id."""
    athlete = roster.athletes.get(bout.athlete_id(side))
    if athlete is not None:
        return athlete.team_id
    return bout.rouge_team_id if side == ROUGE else bout.bleu_team_id


def _side_view(bout: Bout, side: str, roster: Roster, rules: Optional[CombatConfig]) -> BoutSideView:
    prefix = f"{side}_"
    athlete = roster.athletes.get(getattr(bout, prefix + "athlete_id"))
    team_id = side_team_id(bout, side, roster)
    team = roster.teams.get(team_id) if team_id else None
    board = bout.to_score().side(side)
    return BoutSideView(
        athlete_id=athlete.id if athlete else getattr(bout, prefix + "athlete_id"),
        name=(athlete.name if athlete else None) or getattr(bout, prefix + "name") or UNKNOWN_NAME,
        team_id=team_id,
        team_name=(team.name if team else None) or getattr(bout, prefix + "team_name") or UNKNOWN_TEAM,
        weight=(athlete.weight if athlete else None) or getattr(bout, prefix + "weight") or UNKNOWN_WEIGHT,
        sex=(athlete.sex if athlete else None) or getattr(bout, prefix + "sex"),
        ippon=board.ippon,
        wazari=board.wazari,
        yuko=board.yuko,
        shido=board.shido,
        points=technical_points(board, rules.points if rules else None),
    )


def enrich_bout(bout: Bout, roster: Roster, rules: Optional[CombatConfig] = None) -> BoutView:
    mat = roster.mat_for(bout)
    return BoutView(
        id=bout.id,
        etat=bout.etat,
        timer=bout.timer,
        mat_id=mat.id if mat else None,
        mat_name=mat.name if mat else UNASSIGNED_MAT,
        rouge=_side_view(bout, ROUGE, roster, rules),
        bleu=_side_view(bout, BLEU, roster, rules),
        osaekomi_actif=bool(bout.osaekomi_actif),
        osaekomi_cote=bout.osaekomi_cote,
        osaekomi_debut=bout.osaekomi_debut,
        date_creation=bout.date_creation,
        date_fin=bout.date_fin,
        raison_fin=bout.raison_fin,
        vainqueur=determine_winner(bout.to_score(), rules),
    )


def enrich_bouts(session: Session, bouts: Iterable[Bout], rules: Optional[CombatConfig] = None) -> List[BoutView]:
    """Enrich many bouts with a single roster load."""
    bouts = list(bouts)
    if not bouts:
        return []
    roster = Roster.load(session)
    return [enrich_bout(b, roster, rules) for b in bouts]


def enrich_one(session: Session, bout: Optional[Bout], rules: Optional[CombatConfig] = None) -> Optional[BoutView]:
    if bout is None:
        return None
    return enrich_bout(bout, Roster.load(session), rules)


def public_bout(view: BoutView) -> Dict:
    """Trimmed projection for spectator displays."""

    def _side(s: BoutSideView) -> Dict:
        return {
            "name": s.name,
            "team_name": s.team_name,
            "scores": {"ippon": s.ippon, "wazari": s.wazari, "yuko": s.yuko, "shido": s.shido},
        }

    return {
        "id": view.id,
        "etat": view.etat,
        "timer": view.timer,
        "mat_name": view.mat_name,
        "rouge": _side(view.rouge),
        "bleu": _side(view.bleu),
        "vainqueur": view.vainqueur,
        "raison_fin": view.raison_fin,
    }
