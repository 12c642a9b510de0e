"""
Mat (tatami) sequencer: the ordered queue of bouts on a mat and the pointer to
the bout currently being fought.

- advance / retreat move index_combat_actuel by one, bounded by the queue
- assign_bouts appends to the queue and links each bout to its pool rencontre
- compute_confrontation_score totals technical points over finished bouts

Every pointer, assignment and state change is appended to Mat.historique.
JSON columns are always reassigned (never mutated in place) so SQLAlchemy
flushes them.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session, select

from judo.config import TournamentConfig, get_config
from judo.errors import InvalidArgument, NotFound, OutOfRange
from judo.models.bout import Bout
from judo.models.mat import MAT_BUSY, MAT_FREE, MAT_STATES, Mat
from judo.models.pool import RENCONTRE_ASSIGNED, Rencontre
from judo.services.enrichment import BoutView, Roster, enrich_bout, side_team_id
from judo.services.scoreboard import BLEU, BOUT_FINISHED, BOUT_LIVE, BOUT_SCHEDULED, ROUGE
from judo.services.scoring_engine import determine_winner, technical_points

logger = logging.getLogger(__name__)

HISTORY_NEXT = "combat_suivant"
HISTORY_PREVIOUS = "combat_precedent"
HISTORY_ASSIGN = "assigner_combats"
HISTORY_RELEASE = "liberer"
HISTORY_STATE = "changer_etat"


def step_pointer(index: int, count: int, delta: int) -> int:
    """New pointer value after moving by ``delta``; OutOfRange past either end."""
    new_index = index + delta
    if count == 0 or new_index < 0 or new_index > count - 1:
        where = "first" if delta < 0 else "last"
        raise OutOfRange(f"Already at the {where} bout", {"index": index, "count": count})
    return new_index


def get_mat(session: Session, mat_id: int) -> Mat:
    mat = session.get(Mat, mat_id)
    if mat is None:
        raise NotFound(f"Mat {mat_id} not found")
    return mat


def _log(mat: Mat, action: str, now: Optional[datetime] = None, **data: Any) -> None:
    entry = {"action": action, "date": (now or datetime.utcnow()).isoformat()}
    entry.update(data)
    mat.historique = list(mat.historique or []) + [entry]


def current_bout(session: Session, mat: Mat, config: Optional[TournamentConfig] = None) -> Optional[BoutView]:
    bout_id = mat.current_bout_id()
    if bout_id is None:
        return None
    bout = session.get(Bout, bout_id)
    if bout is None:
        logger.warning("Mat %s points at missing bout %s", mat.id, bout_id)
        return None
    config = config or get_config()
    return enrich_bout(bout, Roster.load(session), config.combat)


def _move(session: Session, mat_id: int, delta: int, action: str) -> Tuple[Mat, Optional[BoutView]]:
    mat = get_mat(session, mat_id)
    old_index = mat.index_combat_actuel
    mat.index_combat_actuel = step_pointer(old_index, len(mat.bout_ids or []), delta)
    _log(mat, action, ancienIndex=old_index, nouveauIndex=mat.index_combat_actuel)
    session.add(mat)
    session.commit()
    session.refresh(mat)
    logger.info("Mat %s pointer moved %d -> %d", mat.name, old_index, mat.index_combat_actuel)
    return mat, current_bout(session, mat)


def advance(session: Session, mat_id: int) -> Tuple[Mat, Optional[BoutView]]:
    return _move(session, mat_id, 1, HISTORY_NEXT)


def retreat(session: Session, mat_id: int) -> Tuple[Mat, Optional[BoutView]]:
    return _move(session, mat_id, -1, HISTORY_PREVIOUS)


def attach_to_rencontres(session: Session, bouts: Sequence[Bout], roster: Optional[Roster] = None) -> int:
    """Link each bout to the pool rencontre opposing its two teams. Returns links made."""
    roster = roster or Roster.load(session)
    rencontres = session.exec(select(Rencontre).order_by(Rencontre.id)).all()
    linked = 0
    for bout in bouts:
        red_team = side_team_id(bout, ROUGE, roster)
        blue_team = side_team_id(bout, BLEU, roster)
        for rencontre in rencontres:
            if not rencontre.involves(red_team, blue_team):
                continue
            if bout.id not in (rencontre.bout_ids or []):
                rencontre.bout_ids = list(rencontre.bout_ids or []) + [bout.id]
                linked += 1
            rencontre.etat = RENCONTRE_ASSIGNED
            session.add(rencontre)
            break
    return linked


def assign_bouts(
    session: Session, mat_id: int, bout_ids: List[int], link_rencontres: bool = True
) -> Tuple[Mat, int]:
    """Append bouts to the mat queue, reset the pointer and mark the mat busy.

    Bracket bouts pass ``link_rencontres=False`` so they never count towards a pool.
    """
    mat = get_mat(session, mat_id)
    if not bout_ids:
        raise InvalidArgument("No bout ids given")

    bouts = []
    missing = []
    for bout_id in bout_ids:
        bout = session.get(Bout, bout_id)
        if bout is None:
            missing.append(bout_id)
        else:
            bouts.append(bout)
    if missing:
        raise NotFound(f"Bouts not found: {missing}", {"missing": missing})

    for bout in bouts:
        bout.mat_id = mat.id
        session.add(bout)

    mat.bout_ids = list(mat.bout_ids or []) + [b.id for b in bouts]
    mat.index_combat_actuel = 0
    mat.etat = MAT_BUSY
    _log(mat, HISTORY_ASSIGN, combats=[b.id for b in bouts])
    session.add(mat)

    linked = attach_to_rencontres(session, bouts) if link_rencontres else 0
    session.commit()
    session.refresh(mat)
    logger.info("Assigned %d bouts to mat %s (%d linked to rencontres)", len(bouts), mat.name, linked)
    return mat, len(bouts)


def compute_confrontation_score(session: Session, mat: Mat, config: Optional[TournamentConfig] = None) -> Dict[str, int]:
    """Sum technical points per side over the mat's finished bouts and persist it."""
    config = config or get_config()
    totals = {ROUGE: 0, BLEU: 0}
    for bout_id in mat.bout_ids or []:
        bout = session.get(Bout, bout_id)
        if bout is None or bout.etat != BOUT_FINISHED:
            continue
        score = bout.to_score()
        totals[ROUGE] += technical_points(score.rouge, config.combat.points)
        totals[BLEU] += technical_points(score.bleu, config.combat.points)
    mat.score_confrontation = totals
    session.add(mat)
    session.commit()
    session.refresh(mat)
    return totals


def mats_for_bout(session: Session, bout: Bout) -> List[Mat]:
    return [m for m in session.exec(select(Mat).order_by(Mat.id)).all() if bout.id in (m.bout_ids or [])]


def release(session: Session, mat_id: int) -> Mat:
    mat = get_mat(session, mat_id)
    released = len(mat.bout_ids or [])
    mat.bout_ids = []
    mat.index_combat_actuel = 0
    mat.etat = MAT_FREE
    mat.score_confrontation = {ROUGE: 0, BLEU: 0}
    _log(mat, HISTORY_RELEASE, combatsLiberes=released)
    session.add(mat)
    session.commit()
    session.refresh(mat)
    logger.info("Mat %s released (%d bouts)", mat.name, released)
    return mat


def set_state(session: Session, mat_id: int, etat: str) -> Mat:
    if etat not in MAT_STATES:
        raise InvalidArgument(f"Invalid mat state: {etat!r}", {"allowed": list(MAT_STATES)})
    mat = get_mat(session, mat_id)
    previous = mat.etat
    mat.etat = etat
    _log(mat, HISTORY_STATE, ancienEtat=previous, nouvelEtat=etat)
    session.add(mat)
    session.commit()
    session.refresh(mat)
    return mat


def bout_history(session: Session, mat_id: int, config: Optional[TournamentConfig] = None) -> List[Dict[str, Any]]:
    """One row per queued bout, in queue order."""
    config = config or get_config()
    mat = get_mat(session, mat_id)
    roster = Roster.load(session)
    rows = []
    for index, bout_id in enumerate(mat.bout_ids or []):
        bout = session.get(Bout, bout_id)
        if bout is None:
            continue
        view = enrich_bout(bout, roster, config.combat)
        duration = None
        if bout.date_fin and bout.date_creation:
            duration = int((bout.date_fin - bout.date_creation).total_seconds())
        rows.append(
            {
                "index": index,
                "bout_id": bout.id,
                "actuel": index == mat.index_combat_actuel,
                "etat": bout.etat,
                "rouge": {"name": view.rouge.name, "team_name": view.rouge.team_name, "points": view.rouge.points},
                "bleu": {"name": view.bleu.name, "team_name": view.bleu.team_name, "points": view.bleu.points},
                "vainqueur": determine_winner(bout.to_score(), config.combat),
                "raison_fin": bout.raison_fin,
                "duree": duration,
            }
        )
    return rows


def is_available(mat: Mat) -> bool:
    return mat.etat == MAT_FREE or mat.current_bout_id() is None


def live_confrontations(session: Session) -> List[Dict[str, Any]]:
    """Team pairing of each mat's current bout while that bout is scheduled or live."""
    roster = Roster.load(session)
    result = []
    for mat in session.exec(select(Mat).order_by(Mat.id)).all():
        bout_id = mat.current_bout_id()
        bout = session.get(Bout, bout_id) if bout_id is not None else None
        if bout is None or bout.etat not in (BOUT_SCHEDULED, BOUT_LIVE):
            continue
        red = side_team_id(bout, ROUGE, roster)
        blue = side_team_id(bout, BLEU, roster)
        result.append(
            {
                "mat_id": mat.id,
                "mat_name": mat.name,
                "bout_id": bout.id,
                "equipe_rouge": red,
                "equipe_bleu": blue,
                "equipe_rouge_name": roster.teams[red].name if red in roster.teams else bout.rouge_team_name,
                "equipe_bleu_name": roster.teams[blue].name if blue in roster.teams else bout.bleu_team_name,
                "score_confrontation": mat.score_confrontation,
            }
        )
    return result
