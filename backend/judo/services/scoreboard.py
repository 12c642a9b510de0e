"""
Value types for bout scoring.

A bout's score is held as a BoutScore: two Scoreboards (rouge / bleu) plus the
lifecycle fields the scoring engine reads and writes. Storage column names never
appear here; models.bout.Bout converts to and from this shape.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

# Bout lifecycle states
BOUT_SCHEDULED = "prévu"
BOUT_LIVE = "en cours"
BOUT_PAUSED = "pause"
BOUT_GOLDEN_SCORE = "golden_score"
BOUT_FINISHED = "terminé"

BOUT_STATES = (BOUT_SCHEDULED, BOUT_LIVE, BOUT_PAUSED, BOUT_GOLDEN_SCORE, BOUT_FINISHED)

# Sides
ROUGE = "rouge"
BLEU = "bleu"
SIDES = (ROUGE, BLEU)

# Score types
IPPON = "ippon"
WAZARI = "wazari"
YUKO = "yuko"
SHIDO = "shido"
POINT_TYPES = (IPPON, WAZARI, YUKO, SHIDO)

# Finish reasons
REASON_IPPON = "ippon"
REASON_DOUBLE_WAZARI = "double_wazari"
REASON_DISQUALIFICATION = "disqualification"
REASON_TIME_EXPIRED = "temps_ecoule"
REASON_GOLDEN_SCORE = "avantage_golden_score"
REASON_OSAEKOMI_IPPON = "osaekomi_ippon"
REASON_DECISION = "decision"


def opponent(side: str) -> str:
    return BLEU if side == ROUGE else ROUGE


@dataclass
class Scoreboard:
    ippon: bool = False
    wazari: int = 0
    yuko: int = 0
    shido: int = 0

    def is_blank(self) -> bool:
        return not self.ippon and self.wazari == 0 and self.yuko == 0 and self.shido == 0


@dataclass
class BoutScore:
    etat: str = BOUT_SCHEDULED
    rouge: Scoreboard = field(default_factory=Scoreboard)
    bleu: Scoreboard = field(default_factory=Scoreboard)
    timer: Optional[int] = None
    osaekomi_actif: bool = False
    osaekomi_cote: Optional[str] = None
    osaekomi_debut: Optional[datetime] = None
    date_fin: Optional[datetime] = None
    raison_fin: Optional[str] = None
    vainqueur: Optional[str] = None

    def side(self, side: str) -> Scoreboard:
        return self.rouge if side == ROUGE else self.bleu

    def copy(self) -> "BoutScore":
        """Deep enough copy: scoreboards are rebuilt so the original is never touched."""
        return replace(self, rouge=replace(self.rouge), bleu=replace(self.bleu))

    @property
    def finished(self) -> bool:
        return self.etat == BOUT_FINISHED
