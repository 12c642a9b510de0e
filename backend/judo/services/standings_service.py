"""
Standings: pool rankings, the general ranking and per-team statistics.

A pool ranking is built from confrontations (rencontres), not from single
bouts. A rencontre counts once every bout backing it is finished:
  - the team with more bout wins takes the confrontation
  - equal bout wins are split by technical points (ippon/wazari/yuko weights)
  - equal on both is a tie ("égalité")
Standings points are then awarded per confrontation from PoolConfig.

on_bout_finished() is the hook the bout runtime calls when a bout terminates.
"""
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlmodel import Session, select

from judo.config import TournamentConfig, get_config
from judo.errors import NotFound
from judo.models.bout import Bout
from judo.models.pool import Pool, Rencontre
from judo.models.team import Team
from judo.services.enrichment import Roster, side_team_id
from judo.services.scoreboard import BLEU, BOUT_FINISHED, BOUT_LIVE, ROUGE
from judo.services.scoring_engine import determine_winner, technical_points

logger = logging.getLogger(__name__)


@dataclass
class TeamRecord:
    equipe_id: str
    name: str
    points: int = 0
    victoires: int = 0
    defaites: int = 0
    egalites: int = 0
    confrontations: int = 0
    points_marques: int = 0
    points_encaisses: int = 0
    differentiel: int = 0

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class GeneralRecord(TeamRecord):
    color: Optional[str] = None
    pools: List[str] = field(default_factory=list)


@dataclass
class ConfrontationOutcome:
    """Result of one team-vs-team confrontation seen from side A / side B."""

    wins_a: int = 0
    wins_b: int = 0
    points_a: int = 0
    points_b: int = 0
    finished: bool = False

    @property
    def winner(self) -> Optional[str]:
        if self.wins_a != self.wins_b:
            return "A" if self.wins_a > self.wins_b else "B"
        if self.points_a != self.points_b:
            return "A" if self.points_a > self.points_b else "B"
        return None


def ranking_key(record: TeamRecord):
    """points desc, wins desc, differential desc, scored desc, conceded asc."""
    return (
        -record.points,
        -record.victoires,
        -record.differentiel,
        -record.points_marques,
        record.points_encaisses,
    )


def confrontation_outcome(
    bouts: Sequence[Bout],
    equipe_a: str,
    equipe_b: str,
    roster: Roster,
    config: Optional[TournamentConfig] = None,
) -> ConfrontationOutcome:
    """Tally bout wins and technical points for team A vs team B.

    Bouts whose red side belongs to neither team are ignored. ``finished`` is
    True when at least one bout is given and all of them are terminated.
    """
    config = config or get_config()
    rules = config.combat
    outcome = ConfrontationOutcome(finished=bool(bouts) and all(b.etat == BOUT_FINISHED for b in bouts))

    for bout in bouts:
        red_team = side_team_id(bout, ROUGE, roster)
        if red_team == equipe_a:
            red_is_a = True
        elif red_team == equipe_b:
            red_is_a = False
        else:
            continue

        score = bout.to_score()
        winner = determine_winner(score, rules)
        if winner is not None:
            if (winner == ROUGE) == red_is_a:
                outcome.wins_a += 1
            else:
                outcome.wins_b += 1

        red_points = technical_points(score.rouge, rules.points) if score.finished else 0
        blue_points = technical_points(score.bleu, rules.points) if score.finished else 0
        if red_is_a:
            outcome.points_a += red_points
            outcome.points_b += blue_points
        else:
            outcome.points_a += blue_points
            outcome.points_b += red_points

    return outcome


def resolve_bouts(session: Session, bout_ids: Iterable[int], context: str = "") -> List[Bout]:
    """Load bouts by id, skipping ids that no longer resolve."""
    bouts = []
    for bout_id in bout_ids or []:
        bout = session.get(Bout, bout_id)
        if bout is None:
            logger.warning("Skipping dangling bout reference %s %s", bout_id, context)
            continue
        bouts.append(bout)
    return bouts


def _award(winner: TeamRecord, loser: TeamRecord, config: TournamentConfig) -> None:
    winner.victoires += 1
    winner.points += config.poules.points_victoire
    loser.defaites += 1
    loser.points += config.poules.points_defaite


def compute_pool_standings(
    session: Session,
    pool_id: int,
    config: Optional[TournamentConfig] = None,
    now: Optional[datetime] = None,
) -> Pool:
    """Recompute and persist one pool's ranking."""
    config = config or get_config()
    pool = session.get(Pool, pool_id)
    if pool is None:
        raise NotFound(f"Pool {pool_id} not found")

    roster = Roster.load(session)
    records: Dict[str, TeamRecord] = {}
    for team_id in pool.team_ids or []:
        team = roster.teams.get(team_id)
        records[team_id] = TeamRecord(equipe_id=team_id, name=team.name if team else team_id)

    for rencontre in pool.rencontres:
        if not rencontre.bout_ids:
            continue
        bouts = resolve_bouts(session, rencontre.bout_ids, f"(rencontre {rencontre.id})")
        if not bouts or any(b.etat != BOUT_FINISHED for b in bouts):
            continue

        rec_a = records.get(rencontre.equipe_a)
        rec_b = records.get(rencontre.equipe_b)
        if rec_a is None or rec_b is None:
            continue

        outcome = confrontation_outcome(bouts, rencontre.equipe_a, rencontre.equipe_b, roster, config)
        rec_a.confrontations += 1
        rec_b.confrontations += 1
        rec_a.points_marques += outcome.points_a
        rec_a.points_encaisses += outcome.points_b
        rec_b.points_marques += outcome.points_b
        rec_b.points_encaisses += outcome.points_a

        if outcome.winner == "A":
            _award(rec_a, rec_b, config)
        elif outcome.winner == "B":
            _award(rec_b, rec_a, config)
        else:
            rec_a.egalites += 1
            rec_b.egalites += 1
            rec_a.points += config.poules.points_egalite
            rec_b.points += config.poules.points_egalite

    for record in records.values():
        record.differentiel = record.points_marques - record.points_encaisses

    ranking = sorted(records.values(), key=ranking_key)
    pool.classement = [r.to_dict() for r in ranking]
    pool.derniere_mise_a_jour = now or datetime.utcnow()
    session.add(pool)
    session.commit()
    session.refresh(pool)

    logger.info("Pool standings recomputed: %s (%d teams)", pool.name, len(ranking))
    return pool


def compute_general_standings(session: Session) -> List[GeneralRecord]:
    """Sum every team's pool rows across pools; teams with no confrontation are left out."""
    teams = session.exec(select(Team)).all()
    totals: Dict[str, GeneralRecord] = {
        t.id: GeneralRecord(equipe_id=t.id, name=t.name, color=t.color) for t in teams
    }

    for pool in session.exec(select(Pool).order_by(Pool.id)).all():
        for row in pool.classement or []:
            total = totals.get(row.get("equipe_id"))
            if total is None:
                continue
            total.points += row.get("points", 0)
            total.victoires += row.get("victoires", 0)
            total.defaites += row.get("defaites", 0)
            total.egalites += row.get("egalites", 0)
            total.confrontations += row.get("confrontations", 0)
            total.points_marques += row.get("points_marques", 0)
            total.points_encaisses += row.get("points_encaisses", 0)
            total.pools.append(pool.name)

    for total in totals.values():
        total.differentiel = total.points_marques - total.points_encaisses

    ranking = sorted((t for t in totals.values() if t.confrontations > 0), key=ranking_key)
    logger.info("General standings computed: %d ranked teams", len(ranking))
    return ranking


def pools_referencing(session: Session, bout_id: int) -> List[int]:
    pool_ids = set()
    for rencontre in session.exec(select(Rencontre)).all():
        if bout_id in (rencontre.bout_ids or []):
            pool_ids.add(rencontre.pool_id)
    return sorted(pool_ids)


def on_bout_finished(session: Session, bout: Bout, config: Optional[TournamentConfig] = None) -> List[int]:
    """Recompute the pools whose rencontres reference ``bout``. Returns their ids."""
    if bout.etat != BOUT_FINISHED:
        return []
    pool_ids = pools_referencing(session, bout.id)
    for pool_id in pool_ids:
        compute_pool_standings(session, pool_id, config)
    if pool_ids:
        logger.info("Standings updated after bout %s: pools %s", bout.id, pool_ids)
    return pool_ids


def rencontre_result(session: Session, rencontre: Rencontre, config: Optional[TournamentConfig] = None) -> Dict:
    """Display result of one rencontre; zeros until every bout is finished."""
    bouts = resolve_bouts(session, rencontre.bout_ids, f"(rencontre {rencontre.id})")
    base = {"equipe_a": rencontre.equipe_a, "equipe_b": rencontre.equipe_b}
    if not bouts or any(b.etat != BOUT_FINISHED for b in bouts):
        return {**base, "score_a": 0, "score_b": 0, "points_a": 0, "points_b": 0, "vainqueur": None, "termine": False}

    outcome = confrontation_outcome(bouts, rencontre.equipe_a, rencontre.equipe_b, Roster.load(session), config)
    return {
        **base,
        "score_a": outcome.wins_a,
        "score_b": outcome.wins_b,
        "points_a": outcome.points_a,
        "points_b": outcome.points_b,
        "vainqueur": outcome.winner,
        "termine": True,
    }


def team_stats(session: Session, team_id: str, config: Optional[TournamentConfig] = None) -> Dict:
    """Bout-level statistics for one team, with a per-category breakdown."""
    config = config or get_config()
    team = session.get(Team, team_id)
    if team is None:
        raise NotFound(f"Team {team_id} not found")

    roster = Roster.load(session)
    stats = {
        "equipe_id": team.id,
        "name": team.name,
        "athletes": sum(1 for a in roster.athletes.values() if a.team_id == team_id),
        "bouts": {"total": 0, "termines": 0, "en_cours": 0, "prevus": 0, "victoires": 0, "defaites": 0, "egalites": 0},
        "points": {"marques": 0, "encaisses": 0, "differentiel": 0},
        "categories": {},
    }

    for bout in session.exec(select(Bout).order_by(Bout.id)).all():
        red_team = side_team_id(bout, ROUGE, roster)
        blue_team = side_team_id(bout, BLEU, roster)
        if team_id not in (red_team, blue_team):
            continue
        side = ROUGE if red_team == team_id else BLEU
        other = BLEU if side == ROUGE else ROUGE
        score = bout.to_score()
        stats["bouts"]["total"] += 1

        category = f"{bout.rouge_sex or ''}{bout.rouge_weight or ''}"
        cat = stats["categories"].setdefault(category, {"bouts": 0, "victoires": 0, "defaites": 0})

        if score.finished:
            stats["bouts"]["termines"] += 1
            cat["bouts"] += 1
            winner = determine_winner(score, config.combat)
            if winner == side:
                stats["bouts"]["victoires"] += 1
                cat["victoires"] += 1
            elif winner is None:
                stats["bouts"]["egalites"] += 1
            else:
                stats["bouts"]["defaites"] += 1
                cat["defaites"] += 1
            stats["points"]["marques"] += technical_points(score.side(side), config.combat.points)
            stats["points"]["encaisses"] += technical_points(score.side(other), config.combat.points)
        elif score.etat == BOUT_LIVE:
            stats["bouts"]["en_cours"] += 1
        else:
            stats["bouts"]["prevus"] += 1

    stats["points"]["differentiel"] = stats["points"]["marques"] - stats["points"]["encaisses"]
    return stats


def athlete_stats(session: Session, athlete_id: int, config: Optional[TournamentConfig] = None) -> Dict:
    """Bout record of one athlete: results, scores by type and penalties received."""
    config = config or get_config()
    stats = {
        "athlete_id": athlete_id,
        "total": 0,
        "termines": 0,
        "victoires": 0,
        "defaites": 0,
        "egalites": 0,
        "points_marques": {"ippon": 0, "wazari": 0, "yuko": 0},
        "penalites_recues": 0,
    }
    bouts = session.exec(
        select(Bout)
        .where((Bout.rouge_athlete_id == athlete_id) | (Bout.bleu_athlete_id == athlete_id))
        .order_by(Bout.id)
    ).all()
    for bout in bouts:
        stats["total"] += 1
        score = bout.to_score()
        if not score.finished:
            continue
        side = ROUGE if bout.rouge_athlete_id == athlete_id else BLEU
        stats["termines"] += 1
        winner = determine_winner(score, config.combat)
        if winner == side:
            stats["victoires"] += 1
        elif winner is None:
            stats["egalites"] += 1
        else:
            stats["defaites"] += 1
        board = score.side(side)
        stats["points_marques"]["ippon"] += 1 if board.ippon else 0
        stats["points_marques"]["wazari"] += board.wazari
        stats["points_marques"]["yuko"] += board.yuko
        stats["penalites_recues"] += board.shido
    return stats
