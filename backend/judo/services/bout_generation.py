"""
Bout and pool generation.

Team-vs-team bouts are drawn category by category: for every sex/weight
category both rosters cover, the first athlete of each team (by registration
order) meet, team A on the red side. Pools are dealt round-robin from a
shuffled team list and get every pairwise rencontre.
"""
import logging
import random
from typing import Dict, List, Optional, Tuple

from sqlmodel import Session, select

from judo.config import TournamentConfig, get_config
from judo.errors import InvalidArgument, NotFound
from judo.models.athlete import Athlete
from judo.models.bout import Bout
from judo.models.mat import Mat
from judo.models.pool import RENCONTRE_ASSIGNED, RENCONTRE_PLANNED, Pool, Rencontre
from judo.models.team import Team
from judo.services import mat_sequencer
from judo.services.scoreboard import BLEU, ROUGE

logger = logging.getLogger(__name__)


def _denormalize(bout: Bout, side: str, athlete: Athlete, team: Optional[Team]) -> None:
    setattr(bout, f"{side}_athlete_id", athlete.id)
    setattr(bout, f"{side}_name", athlete.name)
    setattr(bout, f"{side}_team_id", athlete.team_id)
    setattr(bout, f"{side}_team_name", team.name if team else None)
    setattr(bout, f"{side}_weight", athlete.weight)
    setattr(bout, f"{side}_sex", athlete.sex)


def build_bout(
    rouge: Athlete,
    bleu: Athlete,
    rouge_team: Optional[Team] = None,
    bleu_team: Optional[Team] = None,
    config: Optional[TournamentConfig] = None,
) -> Bout:
    """Unsaved scheduled bout between two athletes, timer at the default duration."""
    config = config or get_config()
    bout = Bout(timer=config.combat.duree_par_defaut)
    _denormalize(bout, ROUGE, rouge, rouge_team)
    _denormalize(bout, BLEU, bleu, bleu_team)
    return bout


def create_bout(
    session: Session,
    rouge_athlete_id: int,
    bleu_athlete_id: int,
    config: Optional[TournamentConfig] = None,
) -> Bout:
    if rouge_athlete_id == bleu_athlete_id:
        raise InvalidArgument("An athlete cannot fight themselves")
    rouge = session.get(Athlete, rouge_athlete_id)
    bleu = session.get(Athlete, bleu_athlete_id)
    if rouge is None or bleu is None:
        missing = [i for i, a in ((rouge_athlete_id, rouge), (bleu_athlete_id, bleu)) if a is None]
        raise NotFound(f"Athletes not found: {missing}", {"missing": missing})

    bout = build_bout(rouge, bleu, session.get(Team, rouge.team_id), session.get(Team, bleu.team_id), config)
    session.add(bout)
    session.commit()
    session.refresh(bout)
    logger.info("Bout %s created: %s vs %s", bout.id, rouge.name, bleu.name)
    return bout


def _by_category(athletes: List[Athlete]) -> Dict[str, List[Athlete]]:
    groups: Dict[str, List[Athlete]] = {}
    for athlete in athletes:
        groups.setdefault(f"{athlete.sex}-{athlete.weight}", []).append(athlete)
    return groups


def generate_team_bouts(
    session: Session,
    team_a_id: str,
    team_b_id: str,
    config: Optional[TournamentConfig] = None,
) -> List[Bout]:
    """Create one bout per category shared by the two rosters. May return an empty list."""
    team_a = session.get(Team, team_a_id)
    team_b = session.get(Team, team_b_id)
    if team_a is None or team_b is None:
        missing = [t for t, row in ((team_a_id, team_a), (team_b_id, team_b)) if row is None]
        raise NotFound(f"Teams not found: {missing}", {"missing": missing})
    if team_a_id == team_b_id:
        raise InvalidArgument("A team cannot meet itself")

    roster_a = session.exec(select(Athlete).where(Athlete.team_id == team_a_id).order_by(Athlete.id)).all()
    roster_b = session.exec(select(Athlete).where(Athlete.team_id == team_b_id).order_by(Athlete.id)).all()
    groups_b = _by_category(roster_b)

    bouts = []
    for category, athletes_a in _by_category(roster_a).items():
        if category not in groups_b:
            continue
        bout = build_bout(athletes_a[0], groups_b[category][0], team_a, team_b, config)
        session.add(bout)
        bouts.append(bout)

    session.commit()
    for bout in bouts:
        session.refresh(bout)

    logger.info("%d bouts generated between %s and %s", len(bouts), team_a_id, team_b_id)
    return bouts


def pool_name(index: int) -> str:
    return f"Poule {chr(ord('A') + index)}"


def deal_teams(team_ids: List[str], count: int, seed: Optional[int] = None) -> List[List[str]]:
    """Shuffle team ids and deal them round-robin into ``count`` groups."""
    shuffled = list(team_ids)
    random.Random(seed).shuffle(shuffled)
    groups: List[List[str]] = [[] for _ in range(count)]
    for index, team_id in enumerate(shuffled):
        groups[index % count].append(team_id)
    return groups


def create_pools(
    session: Session,
    count: int,
    seed: Optional[int] = None,
    config: Optional[TournamentConfig] = None,
) -> List[Pool]:
    """Replace every pool with ``count`` fresh pools built from all registered teams."""
    config = config or get_config()
    if not 1 <= count <= config.poules.max_poules:
        raise InvalidArgument(f"Invalid pool count (1-{config.poules.max_poules})", {"count": count})

    teams = session.exec(select(Team).order_by(Team.id)).all()
    if not teams:
        raise InvalidArgument("No teams registered")
    if len(teams) < count:
        raise InvalidArgument(f"Not enough teams ({len(teams)}) for {count} pools")

    for existing in session.exec(select(Pool)).all():
        session.delete(existing)
    session.flush()

    pools = []
    for index, team_ids in enumerate(deal_teams([t.id for t in teams], count, seed)):
        pool = Pool(name=pool_name(index), team_ids=team_ids)
        pool.rencontres = [
            Rencontre(equipe_a=team_ids[i], equipe_b=team_ids[j], etat=RENCONTRE_PLANNED)
            for i in range(len(team_ids))
            for j in range(i + 1, len(team_ids))
        ]
        session.add(pool)
        pools.append(pool)

    session.commit()
    for pool in pools:
        session.refresh(pool)

    logger.info("%d pools created with %d teams", count, len(teams))
    return pools


def get_rencontre(session: Session, pool_id: int, rencontre_id: int) -> Rencontre:
    rencontre = session.get(Rencontre, rencontre_id)
    if rencontre is None or rencontre.pool_id != pool_id:
        raise NotFound(f"Rencontre {rencontre_id} not found in pool {pool_id}")
    return rencontre


def assign_rencontre(
    session: Session,
    pool_id: int,
    rencontre_id: int,
    mat_id: int,
    config: Optional[TournamentConfig] = None,
) -> Tuple[Rencontre, Mat]:
    """Generate the rencontre's category bouts and queue them on a mat."""
    rencontre = get_rencontre(session, pool_id, rencontre_id)
    mat_sequencer.get_mat(session, mat_id)

    bouts = generate_team_bouts(session, rencontre.equipe_a, rencontre.equipe_b, config)
    if not bouts:
        raise InvalidArgument("No bouts generated: the rosters share no category")
    mat, _ = mat_sequencer.assign_bouts(session, mat_id, [b.id for b in bouts])

    new_ids = [b.id for b in bouts if b.id not in (rencontre.bout_ids or [])]
    rencontre.bout_ids = list(rencontre.bout_ids or []) + new_ids
    rencontre.etat = RENCONTRE_ASSIGNED
    session.add(rencontre)
    session.commit()
    session.refresh(rencontre)
    logger.info("Rencontre %s (%s vs %s) assigned to mat %s", rencontre.id, rencontre.equipe_a, rencontre.equipe_b, mat.name)
    return rencontre, mat


def delete_pools(session: Session) -> int:
    pools = session.exec(select(Pool)).all()
    for pool in pools:
        session.delete(pool)
    session.commit()
    logger.info("%d pools deleted", len(pools))
    return len(pools)
