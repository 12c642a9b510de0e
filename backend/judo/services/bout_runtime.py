"""
Bout runtime: load a bout, run the scoring engine on its score, persist the
result and, when the bout has just terminated, cascade the outcome.

Cascade after a finish (FinishEffects):
  - pool standings for every pool whose rencontres reference the bout
  - score of every bracket match backed by the bout (no advancement)
  - confrontation score of every mat queuing the bout

Broadcasting is left to the routes, after this module has committed.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from judo.config import TournamentConfig, get_config
from judo.errors import InvalidArgument, InvalidState, NotFound
from judo.models.bout import Bout
from judo.models.bracket import BracketMatch
from judo.models.mat import Mat
from judo.models.pool import Rencontre
from judo.services import bracket_service, mat_sequencer, standings_service
from judo.services.scoreboard import (
    BOUT_FINISHED,
    BOUT_GOLDEN_SCORE,
    BOUT_LIVE,
    BOUT_PAUSED,
    BOUT_SCHEDULED,
    BOUT_STATES,
    REASON_DECISION,
    BoutScore,
)
from judo.services.scoring_engine import (
    apply_correction,
    apply_osaekomi,
    check_auto_finish,
    finish_bout,
    mark_point,
    reset_score,
)

logger = logging.getLogger(__name__)

# Target state -> states it may be entered from (terminé handled separately)
ALLOWED_TRANSITIONS = {
    BOUT_LIVE: (BOUT_SCHEDULED, BOUT_PAUSED),
    BOUT_PAUSED: (BOUT_LIVE, BOUT_GOLDEN_SCORE),
    BOUT_GOLDEN_SCORE: (BOUT_LIVE, BOUT_PAUSED),
}


@dataclass
class FinishEffects:
    pool_ids: List[int] = field(default_factory=list)
    bracket_match_ids: List[int] = field(default_factory=list)
    mat_ids: List[int] = field(default_factory=list)


@dataclass
class RuntimeResult:
    bout: Bout
    finished: bool = False
    effects: FinishEffects = field(default_factory=FinishEffects)
    points_awarded: List[str] = field(default_factory=list)


def get_bout(session: Session, bout_id: int) -> Bout:
    bout = session.get(Bout, bout_id)
    if bout is None:
        raise NotFound(f"Bout {bout_id} not found")
    return bout


def after_finish(session: Session, bout: Bout, config: Optional[TournamentConfig] = None) -> FinishEffects:
    """Propagate a terminated bout into standings, brackets and mats."""
    effects = FinishEffects()
    if bout.etat != BOUT_FINISHED:
        return effects
    effects.pool_ids = standings_service.on_bout_finished(session, bout, config)
    effects.bracket_match_ids = [m.id for m in bracket_service.on_bout_finished(session, bout, config)]
    for mat in mat_sequencer.mats_for_bout(session, bout):
        mat_sequencer.compute_confrontation_score(session, mat, config)
        effects.mat_ids.append(mat.id)
    return effects


def _save(
    session: Session,
    bout: Bout,
    score: BoutScore,
    config: TournamentConfig,
    points_awarded: Optional[List[str]] = None,
) -> RuntimeResult:
    was_finished = bout.etat == BOUT_FINISHED
    if score.etat == BOUT_FINISHED and not was_finished:
        # No hold outlives its bout
        score.osaekomi_actif = False
        score.osaekomi_cote = None
        score.osaekomi_debut = None
    bout.apply_score(score)
    session.add(bout)
    session.commit()
    session.refresh(bout)

    result = RuntimeResult(bout=bout, points_awarded=points_awarded or [])
    if bout.etat == BOUT_FINISHED and not was_finished:
        logger.info("Bout %s finished: %s, winner %s", bout.id, bout.raison_fin, bout.vainqueur)
        result.finished = True
        result.effects = after_finish(session, bout, config)
        session.refresh(bout)
    return result


def score_point(
    session: Session, bout_id: int, side: str, point_type: str, config: Optional[TournamentConfig] = None
) -> RuntimeResult:
    config = config or get_config()
    bout = get_bout(session, bout_id)
    score = mark_point(bout.to_score(), side, point_type, config.combat)
    return _save(session, bout, score, config)


def start_osaekomi(
    session: Session, bout_id: int, side: str, now: Optional[datetime] = None
) -> Bout:
    bout = get_bout(session, bout_id)
    if bout.etat not in (BOUT_LIVE, BOUT_GOLDEN_SCORE):
        raise InvalidState(f"Osaekomi needs a live bout (state is {bout.etat})")
    if side not in ("rouge", "bleu"):
        raise InvalidArgument(f"Invalid side: {side!r}")
    bout.osaekomi_actif = True
    bout.osaekomi_cote = side
    bout.osaekomi_debut = now or datetime.utcnow()
    session.add(bout)
    session.commit()
    session.refresh(bout)
    return bout


def stop_osaekomi(
    session: Session,
    bout_id: int,
    duration: Optional[float] = None,
    config: Optional[TournamentConfig] = None,
    now: Optional[datetime] = None,
) -> RuntimeResult:
    """End the active hold. Without an explicit duration it is measured from osaekomi_debut."""
    config = config or get_config()
    bout = get_bout(session, bout_id)
    if bout.etat == BOUT_FINISHED:
        raise InvalidState("Bout is finished")
    if not bout.osaekomi_actif or not bout.osaekomi_cote:
        raise InvalidState("No osaekomi in progress")
    now = now or datetime.utcnow()
    if duration is None:
        duration = (now - bout.osaekomi_debut).total_seconds() if bout.osaekomi_debut else 0
    if duration < 0:
        raise InvalidArgument("Osaekomi duration cannot be negative")

    outcome = apply_osaekomi(duration, bout.to_score(), bout.osaekomi_cote, config.combat, now)
    score = outcome.score
    score.osaekomi_actif = False
    score.osaekomi_cote = None
    score.osaekomi_debut = None
    return _save(session, bout, score, config, outcome.points_awarded)


def correct(
    session: Session,
    bout_id: int,
    side: str,
    operation: str,
    point_type: Optional[str] = None,
    source: Optional[str] = None,
    target: Optional[str] = None,
    config: Optional[TournamentConfig] = None,
) -> RuntimeResult:
    config = config or get_config()
    bout = get_bout(session, bout_id)
    reopened = bout.etat == BOUT_FINISHED
    score = apply_correction(bout.to_score(), side, operation, point_type, source, target)
    result = _save(session, bout, score, config)
    if reopened:
        logger.info("Bout %s reopened by a correction (%s on %s)", bout.id, operation, side)
    return result


def reset(session: Session, bout_id: int, config: Optional[TournamentConfig] = None) -> Bout:
    config = config or get_config()
    bout = get_bout(session, bout_id)
    was_finished = bout.etat == BOUT_FINISHED
    bout.apply_score(reset_score(bout.to_score(), timer=config.combat.duree_par_defaut))
    session.add(bout)
    session.commit()
    session.refresh(bout)
    logger.info("Bout %s reset", bout.id)
    if was_finished:
        _recompute_pools(session, standings_service.pools_referencing(session, bout.id), config)
        session.refresh(bout)
    return bout


def change_state(
    session: Session, bout_id: int, etat: str, config: Optional[TournamentConfig] = None
) -> RuntimeResult:
    """Clock-driven state changes and manual finish.

    terminé can be entered from any live state; the reason is the one the
    auto-finish check gives, else ``decision``.
    """
    config = config or get_config()
    if etat not in BOUT_STATES:
        raise InvalidArgument(f"Invalid bout state: {etat!r}", {"allowed": list(BOUT_STATES)})
    bout = get_bout(session, bout_id)
    current = bout.etat

    if current == BOUT_FINISHED:
        raise InvalidState("Bout is finished; apply a correction or reset it")
    if etat == current:
        return RuntimeResult(bout=bout)

    if etat == BOUT_FINISHED:
        score = bout.to_score()
        reason = check_auto_finish(score, config.combat) or REASON_DECISION
        return _save(session, bout, finish_bout(score, reason, config.combat), config)

    if etat == BOUT_SCHEDULED or current not in ALLOWED_TRANSITIONS.get(etat, ()):
        raise InvalidState(f"Cannot go from {current} to {etat}")

    score = bout.to_score()
    score.etat = etat
    if etat == BOUT_GOLDEN_SCORE:
        if not config.combat.enable_golden_score:
            raise InvalidState("Golden score is disabled")
        score.timer = config.combat.duree_golden_score
    return _save(session, bout, score, config)


def update_timer(
    session: Session, bout_id: int, timer: int, config: Optional[TournamentConfig] = None
) -> RuntimeResult:
    """Store the remaining clock time; a live bout at zero ends with temps_ecoule."""
    config = config or get_config()
    if timer < 0:
        raise InvalidArgument("Timer cannot be negative")
    bout = get_bout(session, bout_id)
    if bout.etat == BOUT_FINISHED:
        raise InvalidState("Bout is finished")

    score = bout.to_score()
    score.timer = timer
    reason = check_auto_finish(score, config.combat, timer=timer)
    if reason:
        score = finish_bout(score, reason, config.combat)
    return _save(session, bout, score, config)


def delete_bout(session: Session, bout_id: int) -> None:
    """Remove a bout after detaching it from mats, rencontres and bracket matches."""
    bout = get_bout(session, bout_id)
    pool_ids = standings_service.pools_referencing(session, bout_id)

    for mat in session.exec(select(Mat)).all():
        ids = mat.bout_ids or []
        if bout_id not in ids:
            continue
        position = ids.index(bout_id)
        remaining = [i for i in ids if i != bout_id]
        index = mat.index_combat_actuel
        if position < index:
            index -= 1
        mat.bout_ids = remaining
        mat.index_combat_actuel = max(0, min(index, len(remaining) - 1))
        session.add(mat)

    for rencontre in session.exec(select(Rencontre)).all():
        if bout_id in (rencontre.bout_ids or []):
            rencontre.bout_ids = [i for i in rencontre.bout_ids if i != bout_id]
            session.add(rencontre)

    for match in session.exec(select(BracketMatch)).all():
        if bout_id in (match.bout_ids or []):
            match.bout_ids = [i for i in match.bout_ids if i != bout_id]
            session.add(match)

    session.delete(bout)
    session.commit()
    logger.info("Bout %s deleted", bout_id)
    _recompute_pools(session, pool_ids)


def _recompute_pools(session: Session, pool_ids: List[int], config: Optional[TournamentConfig] = None) -> None:
    """Rank pools again once a bout stops counting towards them."""
    for pool_id in pool_ids:
        standings_service.compute_pool_standings(session, pool_id, config)
    if pool_ids:
        logger.info("Standings recomputed for pools %s", pool_ids)
