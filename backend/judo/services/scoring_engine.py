"""
Bout scoring engine.

Pure functions over BoutScore values: every operation works on a copy and
returns it, the caller persists the result. Thresholds and point values come
from CombatConfig (judo.config); when omitted the process config is used.

Winner ladder (first match wins):
  1. ippon on a side
  2. wazari count >= wazari_for_ippon
  3. shido count >= shido_for_defeat on the opponent
  4. more wazari
  5. more yuko
  6. draw (None)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from judo.config import CombatConfig, PointValues, get_config
from judo.errors import InvalidArgument, InvalidState
from judo.services.scoreboard import (
    BLEU,
    BOUT_FINISHED,
    BOUT_GOLDEN_SCORE,
    BOUT_LIVE,
    BOUT_PAUSED,
    BOUT_SCHEDULED,
    IPPON,
    POINT_TYPES,
    REASON_DISQUALIFICATION,
    REASON_DOUBLE_WAZARI,
    REASON_GOLDEN_SCORE,
    REASON_IPPON,
    REASON_OSAEKOMI_IPPON,
    REASON_TIME_EXPIRED,
    ROUGE,
    SHIDO,
    SIDES,
    WAZARI,
    YUKO,
    BoutScore,
    Scoreboard,
)

CORRECTION_REMOVE = "retirer"
CORRECTION_CONVERT = "convertir"
CORRECTION_RESET = "raz"
CORRECTION_OPERATIONS = (CORRECTION_REMOVE, CORRECTION_CONVERT, CORRECTION_RESET)

# (from, to) pairs accepted by a "convertir" correction
ALLOWED_CONVERSIONS = {(IPPON, WAZARI), (IPPON, YUKO), (WAZARI, YUKO)}


@dataclass
class OsaekomiResult:
    score: BoutScore
    points_awarded: List[str] = field(default_factory=list)
    finished: bool = False


def _rules(rules: Optional[CombatConfig]) -> CombatConfig:
    return rules if rules is not None else get_config().combat


def _check_side(side: str) -> None:
    if side not in SIDES:
        raise InvalidArgument(f"Invalid side: {side!r}", {"allowed": list(SIDES)})


def _check_point_type(point_type: str) -> None:
    if point_type not in POINT_TYPES:
        raise InvalidArgument(f"Invalid point type: {point_type!r}", {"allowed": list(POINT_TYPES)})


def _finish(score: BoutScore, reason: str, winner: Optional[str], now: Optional[datetime]) -> None:
    score.etat = BOUT_FINISHED
    score.date_fin = now or datetime.utcnow()
    score.raison_fin = reason
    score.vainqueur = winner


def check_auto_finish(
    score: BoutScore,
    rules: Optional[CombatConfig] = None,
    timer: Optional[int] = None,
) -> Optional[str]:
    """Return the reason the bout should end now, or None if it stays live.

    ``timer`` is the remaining clock time as seen by the caller; when it is
    given and has run out on a live bout the reason is ``temps_ecoule``.
    """
    rules = _rules(rules)
    thresholds = rules.thresholds
    rouge, bleu = score.rouge, score.bleu

    if rouge.ippon or bleu.ippon:
        return REASON_IPPON
    if rouge.wazari >= thresholds.wazari_for_ippon or bleu.wazari >= thresholds.wazari_for_ippon:
        return REASON_DOUBLE_WAZARI
    if rouge.shido >= thresholds.shido_for_defeat or bleu.shido >= thresholds.shido_for_defeat:
        return REASON_DISQUALIFICATION
    if timer is not None and timer <= 0 and score.etat == BOUT_LIVE:
        return REASON_TIME_EXPIRED
    if score.etat == BOUT_GOLDEN_SCORE:
        if rouge.wazari > 0 or bleu.wazari > 0 or rouge.yuko > 0 or bleu.yuko > 0:
            return REASON_GOLDEN_SCORE
    return None


def determine_winner(score: BoutScore, rules: Optional[CombatConfig] = None) -> Optional[str]:
    """Winner of a finished bout ("rouge" / "bleu"), None for a draw or an unfinished bout."""
    if score.etat != BOUT_FINISHED:
        return None

    thresholds = _rules(rules).thresholds
    rouge, bleu = score.rouge, score.bleu

    if rouge.ippon:
        return ROUGE
    if bleu.ippon:
        return BLEU

    if rouge.wazari >= thresholds.wazari_for_ippon:
        return ROUGE
    if bleu.wazari >= thresholds.wazari_for_ippon:
        return BLEU

    # Penalties are charged against a side: too many hands the bout to the opponent
    if bleu.shido >= thresholds.shido_for_defeat:
        return ROUGE
    if rouge.shido >= thresholds.shido_for_defeat:
        return BLEU

    if rouge.wazari != bleu.wazari:
        return ROUGE if rouge.wazari > bleu.wazari else BLEU
    if rouge.yuko != bleu.yuko:
        return ROUGE if rouge.yuko > bleu.yuko else BLEU
    return None


def finish_bout(
    score: BoutScore,
    reason: str,
    rules: Optional[CombatConfig] = None,
    now: Optional[datetime] = None,
) -> BoutScore:
    """Terminate a copy of the bout with ``reason``; the winner comes from the ladder."""
    if score.etat == BOUT_FINISHED:
        raise InvalidState("Bout is already finished")
    updated = score.copy()
    updated.etat = BOUT_FINISHED
    _finish(updated, reason, determine_winner(updated, rules), now)
    return updated


def mark_point(
    score: BoutScore,
    side: str,
    point_type: str,
    rules: Optional[CombatConfig] = None,
    now: Optional[datetime] = None,
) -> BoutScore:
    """Record one score (or penalty) for ``side`` and auto-finish if a threshold is reached.

    A shido is charged to the side passed in, i.e. callers pass the offending side.
    """
    if score.etat == BOUT_FINISHED:
        raise InvalidState("Bout is finished; apply a correction to change its score")
    _check_side(side)
    _check_point_type(point_type)

    updated = score.copy()
    board = updated.side(side)
    if point_type == IPPON:
        board.ippon = True
    elif point_type == WAZARI:
        board.wazari += 1
    elif point_type == YUKO:
        board.yuko += 1
    else:
        board.shido += 1

    reason = check_auto_finish(updated, rules)
    if reason:
        updated.etat = BOUT_FINISHED
        _finish(updated, reason, determine_winner(updated, rules), now)
    return updated


def apply_osaekomi(
    duration: float,
    score: BoutScore,
    holding_side: str,
    rules: Optional[CombatConfig] = None,
    now: Optional[datetime] = None,
) -> OsaekomiResult:
    """Convert a hold-down of ``duration`` seconds into score for ``holding_side``.

    The transient osaekomi fields are left as they are; clearing them is the
    caller's job.
    """
    if score.etat == BOUT_FINISHED:
        raise InvalidState("Bout is already finished")
    _check_side(holding_side)
    rules = _rules(rules)
    osaekomi = rules.osaekomi
    updated = score.copy()
    board = updated.side(holding_side)
    awarded: List[str] = []

    if duration >= osaekomi.ippon:
        # Earlier wazari/yuko stay on the sheet; the ippon decides on its own
        board.ippon = True
        awarded.append(IPPON)
        _finish(updated, REASON_OSAEKOMI_IPPON, holding_side, now)
    elif duration >= osaekomi.wazari:
        # The hold passed through yuko before reaching wazari: that yuko is
        # converted into the wazari rather than added on top.
        board.yuko += 1
        board.wazari += 1
        board.yuko -= 1
        awarded.append(WAZARI)
        if board.wazari >= rules.thresholds.wazari_for_ippon:
            _finish(updated, REASON_DOUBLE_WAZARI, holding_side, now)
    elif duration >= osaekomi.yuko:
        board.yuko += 1
        awarded.append(YUKO)

    return OsaekomiResult(score=updated, points_awarded=awarded, finished=updated.etat == BOUT_FINISHED)


def apply_correction(
    score: BoutScore,
    side: str,
    operation: str,
    point_type: Optional[str] = None,
    source: Optional[str] = None,
    target: Optional[str] = None,
) -> BoutScore:
    """Out-of-band score edit, allowed in every state.

    - retirer: remove one ``point_type`` unit (floored at zero / False)
    - convertir: move one unit from ``source`` to ``target`` if the source has one
    - raz: clear the four counters of ``side``

    A finished bout is reopened in ``pause`` because its recorded outcome may no
    longer hold.
    """
    _check_side(side)
    if operation not in CORRECTION_OPERATIONS:
        raise InvalidArgument(f"Invalid correction operation: {operation!r}", {"allowed": list(CORRECTION_OPERATIONS)})

    updated = score.copy()
    board = updated.side(side)

    if operation == CORRECTION_REMOVE:
        if not point_type:
            raise InvalidArgument("A point type is required to remove a score")
        _check_point_type(point_type)
        if point_type == IPPON:
            board.ippon = False
        elif point_type == WAZARI:
            board.wazari = max(0, board.wazari - 1)
        elif point_type == YUKO:
            board.yuko = max(0, board.yuko - 1)
        elif point_type == SHIDO:
            board.shido = max(0, board.shido - 1)
    elif operation == CORRECTION_CONVERT:
        if not source or not target:
            raise InvalidArgument("Source and target types are required to convert a score")
        if (source, target) not in ALLOWED_CONVERSIONS:
            raise InvalidArgument(
                f"Cannot convert {source} into {target}",
                {"allowed": sorted(f"{a}->{b}" for a, b in ALLOWED_CONVERSIONS)},
            )
        if source == IPPON and board.ippon:
            board.ippon = False
            _add_unit(board, target)
        elif source == WAZARI and board.wazari > 0:
            board.wazari -= 1
            _add_unit(board, target)
    else:
        updated.rouge = Scoreboard() if side == ROUGE else updated.rouge
        updated.bleu = Scoreboard() if side == BLEU else updated.bleu

    if score.etat == BOUT_FINISHED:
        updated.etat = BOUT_PAUSED
        updated.date_fin = None
        updated.raison_fin = None
        updated.vainqueur = None
    return updated


def _add_unit(board: Scoreboard, point_type: str) -> None:
    if point_type == WAZARI:
        board.wazari += 1
    elif point_type == YUKO:
        board.yuko += 1


def reset_score(score: BoutScore, timer: Optional[int] = None) -> BoutScore:
    """Fresh, scheduled copy of the bout: counters, osaekomi and finish data cleared."""
    return BoutScore(etat=BOUT_SCHEDULED, timer=timer if timer is not None else score.timer)


def technical_points(board: Scoreboard, points: Optional[PointValues] = None) -> int:
    """Weighted ippon/wazari/yuko total for one side. Shido does not count."""
    points = points if points is not None else get_config().combat.points
    total = points.ippon if board.ippon else 0
    total += board.wazari * points.wazari
    total += board.yuko * points.yuko
    return total
