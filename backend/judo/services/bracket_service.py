"""
Elimination brackets: principal, consolante and two bronze matches.

Structure
  - the start phase depends on the team count (<=2 finale, <=4 demi,
    <=8 quart, <=16 huitieme, else seizieme)
  - an odd count pads the last pairing with a bye; the present team wins it
    at once and is moved into the next phase
  - every later phase is created empty up to the final

Advancement
  - match n of a phase feeds slot A (n odd) or B (n even) of match
    (n - 1) // 2 + 1 of the next phase
  - principal demi losers go to bronze n slot A
  - the consolante finalists go to slot B of bronze 1 (winner) and bronze 2 (loser)

Match scores are counted in bouts won; a finished bout's result is pushed into
its match by on_bout_finished(), advancement itself is an explicit call.
"""
import logging
import random
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlmodel import Session, select

from judo.config import TournamentConfig, get_config
from judo.errors import InvalidArgument, InvalidState, NotFound
from judo.models.bout import Bout
from judo.models.bracket import (
    BRACKET_BRONZE,
    BRACKET_CONSOLATION,
    BRACKET_PRINCIPAL,
    BRACKET_TYPES,
    PHASES,
    BracketMatch,
)
from judo.models.team import Team
from judo.services import mat_sequencer
from judo.services.bout_generation import generate_team_bouts
from judo.services.enrichment import Roster, side_team_id
from judo.services.scoreboard import BOUT_FINISHED, ROUGE
from judo.services.scoring_engine import determine_winner

logger = logging.getLogger(__name__)

SLOT_A = "A"
SLOT_B = "B"

PHASE_FINAL = "finale"
PHASE_SEMI = "demi"

# Empty match count of the phase that follows each phase
FOLLOWING_PHASE = {
    "seizieme": ("huitieme", 8),
    "huitieme": ("quart", 4),
    "quart": ("demi", 2),
    "demi": ("finale", 1),
}


def start_phase_for(team_count: int) -> str:
    if team_count <= 2:
        return "finale"
    if team_count <= 4:
        return "demi"
    if team_count <= 8:
        return "quart"
    if team_count <= 16:
        return "huitieme"
    return "seizieme"


def next_slot(match_number: int) -> Tuple[int, str]:
    """(0-based index in the next phase, slot) fed by the winner of ``match_number``."""
    return (match_number - 1) // 2, SLOT_A if match_number % 2 == 1 else SLOT_B


def pair_teams(team_ids: List[Optional[str]]) -> List[Tuple[Optional[str], Optional[str]]]:
    padded = list(team_ids)
    if len(padded) % 2:
        padded.append(None)
    return [(padded[i], padded[i + 1]) for i in range(0, len(padded), 2)]


def _set_slot(match: BracketMatch, slot: str, team_id: Optional[str]) -> None:
    if slot == SLOT_A:
        match.equipe_a = team_id
    else:
        match.equipe_b = team_id


def _build_tree(bracket_type: str, team_ids: List[str]) -> List[BracketMatch]:
    phase = start_phase_for(len(team_ids))
    matches = []
    for number, (team_a, team_b) in enumerate(pair_teams(team_ids), start=1):
        has_bye = team_a is None or team_b is None
        winner = None
        if has_bye:
            winner = SLOT_B if team_a is None else SLOT_A
        matches.append(
            BracketMatch(
                bracket_type=bracket_type,
                phase=phase,
                match_number=number,
                equipe_a=team_a,
                equipe_b=team_b,
                vainqueur=winner,
                has_bye=has_bye,
                assigned=has_bye,
            )
        )

    while phase in FOLLOWING_PHASE:
        phase, count = FOLLOWING_PHASE[phase]
        matches.extend(
            BracketMatch(bracket_type=bracket_type, phase=phase, match_number=n) for n in range(1, count + 1)
        )
    return matches


def _check_teams(session: Session, team_ids: List[str]) -> None:
    if len(set(team_ids)) != len(team_ids):
        raise InvalidArgument("A team appears twice in the bracket")
    missing = [t for t in team_ids if session.get(Team, t) is None]
    if missing:
        raise NotFound(f"Teams not found: {missing}", {"missing": missing})


def create_brackets(
    session: Session,
    principal: List[str],
    consolante: Optional[List[str]] = None,
    seed: Optional[int] = None,
) -> Dict[str, Any]:
    """Replace the brackets. Returns the start phase of each tree."""
    if not principal or len(principal) < 2:
        raise InvalidArgument("The principal bracket needs at least 2 teams")
    consolante = list(consolante or [])
    _check_teams(session, list(principal) + consolante)

    rng = random.Random(seed)
    principal = list(principal)
    rng.shuffle(principal)
    rng.shuffle(consolante)

    for existing in session.exec(select(BracketMatch)).all():
        session.delete(existing)
    session.flush()

    matches = _build_tree(BRACKET_PRINCIPAL, principal)
    if len(consolante) >= 2:
        matches.extend(_build_tree(BRACKET_CONSOLATION, consolante))
    matches.extend(
        BracketMatch(bracket_type=BRACKET_BRONZE, phase=BRACKET_BRONZE, match_number=n, description=f"Bronze #{n}")
        for n in (1, 2)
    )
    for match in matches:
        session.add(match)
    session.flush()

    # Byes are decided on creation; push their winners forward
    for match in matches:
        if match.has_bye:
            _propagate(session, match)

    session.commit()
    result = {
        "start_phase_principal": start_phase_for(len(principal)),
        "start_phase_consolante": start_phase_for(len(consolante)) if len(consolante) >= 2 else None,
        "matches": len(matches),
    }
    logger.info("Brackets created: %d principal teams, %d consolante teams", len(principal), len(consolante))
    return result


def get_match(session: Session, bracket_type: str, phase: str, match_number: int) -> BracketMatch:
    if bracket_type not in BRACKET_TYPES:
        raise InvalidArgument(f"Invalid bracket type: {bracket_type!r}", {"allowed": list(BRACKET_TYPES)})
    if bracket_type == BRACKET_BRONZE:
        phase = BRACKET_BRONZE
    match = session.exec(
        select(BracketMatch).where(
            BracketMatch.bracket_type == bracket_type,
            BracketMatch.phase == phase,
            BracketMatch.match_number == match_number,
        )
    ).first()
    if match is None:
        raise NotFound(f"Bracket match {bracket_type}/{phase}/{match_number} not found")
    return match


def _find(session: Session, bracket_type: str, phase: str, match_number: int) -> Optional[BracketMatch]:
    return session.exec(
        select(BracketMatch).where(
            BracketMatch.bracket_type == bracket_type,
            BracketMatch.phase == phase,
            BracketMatch.match_number == match_number,
        )
    ).first()


def list_brackets(session: Session) -> Dict[str, Any]:
    """Nested view: {principal: {phase: [...]}, consolante: {...}, bronze: [...]}."""
    view: Dict[str, Any] = {
        BRACKET_PRINCIPAL: {p: [] for p in PHASES},
        BRACKET_CONSOLATION: {p: [] for p in PHASES},
        BRACKET_BRONZE: [],
    }
    rows = session.exec(
        select(BracketMatch).order_by(BracketMatch.bracket_type, BracketMatch.phase, BracketMatch.match_number)
    ).all()
    for match in rows:
        if match.bracket_type == BRACKET_BRONZE:
            view[BRACKET_BRONZE].append(match)
        else:
            view[match.bracket_type][match.phase].append(match)
    return view


def recompute_match(
    session: Session,
    match: BracketMatch,
    config: Optional[TournamentConfig] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Count bout wins per side; decide the match once every bout is finished.

    An already decided match keeps its recorded winner and scores.
    """
    config = config or get_config()
    if match.has_bye:
        return {"score_a": 0, "score_b": 0, "vainqueur": match.vainqueur, "termine": True, "combats_restants": 0}
    if not match.bout_ids:
        return {"score_a": 0, "score_b": 0, "vainqueur": match.vainqueur, "termine": False, "combats_restants": 0}

    roster = Roster.load(session)
    score_a = score_b = 0
    remaining = 0
    for bout_id in match.bout_ids:
        bout = session.get(Bout, bout_id)
        if bout is None or bout.etat != BOUT_FINISHED:
            remaining += 1
            continue
        winner = determine_winner(bout.to_score(), config.combat)
        if winner is None:
            continue
        red_is_a = side_team_id(bout, ROUGE, roster) == match.equipe_a
        if (winner == ROUGE) == red_is_a:
            score_a += 1
        else:
            score_b += 1

    complete = remaining == 0
    if complete and match.vainqueur is None:
        match.score_a = score_a
        match.score_b = score_b
        if score_a != score_b:
            match.vainqueur = SLOT_A if score_a > score_b else SLOT_B
            match.date_fin_match = now or datetime.utcnow()
        session.add(match)
        session.commit()
        session.refresh(match)
        logger.info(
            "Bracket match %s/%s/%s scored %d-%d (winner %s)",
            match.bracket_type, match.phase, match.match_number, score_a, score_b, match.vainqueur,
        )

    return {
        "score_a": score_a,
        "score_b": score_b,
        "vainqueur": match.vainqueur,
        "termine": complete,
        "combats_restants": remaining,
    }


def _propagate(session: Session, match: BracketMatch) -> Dict[str, Any]:
    winner = match.winner_team()
    loser = match.loser_team()
    result: Dict[str, Any] = {"vainqueur": winner}

    if match.bracket_type == BRACKET_BRONZE:
        result["medaille_bronze"] = winner
        return result

    if match.phase == PHASE_FINAL:
        if match.bracket_type == BRACKET_PRINCIPAL:
            result["champion"] = winner
        else:
            for number, team_id in ((1, winner), (2, loser)):
                bronze = _find(session, BRACKET_BRONZE, BRACKET_BRONZE, number)
                if bronze is not None:
                    bronze.equipe_b = team_id
                    session.add(bronze)
            result["bronze"] = {"1": winner, "2": loser}
        return result

    next_phase, _ = FOLLOWING_PHASE[match.phase]
    index, slot = next_slot(match.match_number)
    target = _find(session, match.bracket_type, next_phase, index + 1)
    if target is not None:
        _set_slot(target, slot, winner)
        session.add(target)
        result["next"] = {"phase": next_phase, "match_number": index + 1, "slot": slot}

    if match.phase == PHASE_SEMI and match.bracket_type == BRACKET_PRINCIPAL:
        bronze = _find(session, BRACKET_BRONZE, BRACKET_BRONZE, match.match_number)
        if bronze is not None:
            bronze.equipe_a = loser
            session.add(bronze)
            result["bronze"] = {str(bronze.match_number): loser}
    return result


def advance_winner(session: Session, match: BracketMatch) -> Dict[str, Any]:
    """Move a decided match's winner (and routed loser) into the following matches."""
    if match.vainqueur is None:
        raise InvalidState("No winner recorded for this match")
    result = _propagate(session, match)
    session.commit()
    logger.info(
        "Bracket advancement from %s/%s/%s: %s", match.bracket_type, match.phase, match.match_number, result
    )
    return result


def assign_match(
    session: Session,
    match: BracketMatch,
    mat_id: int,
    config: Optional[TournamentConfig] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Generate the match's bouts and queue them on a mat."""
    if match.has_bye:
        raise InvalidState("A bye match is not fought")
    if not match.equipe_a or not match.equipe_b:
        raise InvalidState("Match is missing a team")
    mat_sequencer.get_mat(session, mat_id)

    bouts = generate_team_bouts(session, match.equipe_a, match.equipe_b, config)
    if not bouts:
        raise InvalidArgument("No bouts generated: the rosters share no category")
    mat, count = mat_sequencer.assign_bouts(session, mat_id, [b.id for b in bouts], link_rencontres=False)

    match.bout_ids = [b.id for b in bouts]
    match.assigned = True
    match.mat_id = mat_id
    match.date_assignation = now or datetime.utcnow()
    session.add(match)
    session.commit()
    session.refresh(match)
    logger.info("Bracket match %s/%s/%s assigned to mat %s", match.bracket_type, match.phase, match.match_number, mat.name)
    return {"combats_crees": count, "bout_ids": match.bout_ids, "mat": mat}


def override_match(
    session: Session,
    match: BracketMatch,
    score_a: Optional[int] = None,
    score_b: Optional[int] = None,
    vainqueur: Optional[str] = None,
) -> BracketMatch:
    if vainqueur is not None and vainqueur not in (SLOT_A, SLOT_B):
        raise InvalidArgument(f"Invalid winner slot: {vainqueur!r}", {"allowed": [SLOT_A, SLOT_B]})
    if score_a is not None:
        match.score_a = score_a
    if score_b is not None:
        match.score_b = score_b
    if vainqueur is not None:
        match.vainqueur = vainqueur
        match.date_fin_match = datetime.utcnow()
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


def reset_brackets(session: Session) -> int:
    rows = session.exec(select(BracketMatch)).all()
    for row in rows:
        session.delete(row)
    session.commit()
    logger.info("Brackets reset (%d matches removed)", len(rows))
    return len(rows)


def matches_referencing(session: Session, bout_id: int) -> List[BracketMatch]:
    return [m for m in session.exec(select(BracketMatch)).all() if bout_id in (m.bout_ids or [])]


def on_bout_finished(session: Session, bout: Bout, config: Optional[TournamentConfig] = None) -> List[BracketMatch]:
    """Rescore the bracket matches backed by ``bout``. Winners are not advanced here."""
    if bout.etat != BOUT_FINISHED:
        return []
    matches = matches_referencing(session, bout.id)
    for match in matches:
        recompute_match(session, match, config)
    return matches
