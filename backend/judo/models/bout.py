from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from judo.services.scoreboard import BOUT_SCHEDULED, BoutScore, Scoreboard


class Bout(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    mat_id: Optional[int] = Field(default=None, foreign_key="mat.id", index=True)

    # Red side: athlete reference plus display data denormalized at creation
    rouge_athlete_id: Optional[int] = Field(default=None, foreign_key="athlete.id")
    rouge_name: Optional[str] = Field(default=None)
    rouge_team_id: Optional[str] = Field(default=None)
    rouge_team_name: Optional[str] = Field(default=None)
    rouge_weight: Optional[str] = Field(default=None)
    rouge_sex: Optional[str] = Field(default=None)

    # Blue side
    bleu_athlete_id: Optional[int] = Field(default=None, foreign_key="athlete.id")
    bleu_name: Optional[str] = Field(default=None)
    bleu_team_id: Optional[str] = Field(default=None)
    bleu_team_name: Optional[str] = Field(default=None)
    bleu_weight: Optional[str] = Field(default=None)
    bleu_sex: Optional[str] = Field(default=None)

    # Score counters (shido is charged against the side it is stored under)
    rouge_ippon: bool = Field(default=False)
    rouge_wazari: int = Field(default=0)
    rouge_yuko: int = Field(default=0)
    rouge_shido: int = Field(default=0)
    bleu_ippon: bool = Field(default=False)
    bleu_wazari: int = Field(default=0)
    bleu_yuko: int = Field(default=0)
    bleu_shido: int = Field(default=0)

    etat: str = Field(default=BOUT_SCHEDULED)  # "prévu" | "en cours" | "pause" | "golden_score" | "terminé"
    timer: Optional[int] = Field(default=None)  # remaining seconds, owned by the mat clock

    # Osaekomi sub-state, only meaningful while osaekomi_actif
    osaekomi_actif: bool = Field(default=False)
    osaekomi_cote: Optional[str] = Field(default=None)
    osaekomi_debut: Optional[datetime] = Field(default=None)

    # Finish metadata, set on termination only
    date_fin: Optional[datetime] = Field(default=None)
    raison_fin: Optional[str] = Field(default=None)
    vainqueur: Optional[str] = Field(default=None)  # "rouge" | "bleu" | None (draw)

    date_creation: datetime = Field(default_factory=datetime.utcnow)

    def to_score(self) -> BoutScore:
        """Structured score value handed to the scoring engine."""
        return BoutScore(
            etat=self.etat,
            rouge=Scoreboard(
                ippon=bool(self.rouge_ippon),
                wazari=self.rouge_wazari or 0,
                yuko=self.rouge_yuko or 0,
                shido=self.rouge_shido or 0,
            ),
            bleu=Scoreboard(
                ippon=bool(self.bleu_ippon),
                wazari=self.bleu_wazari or 0,
                yuko=self.bleu_yuko or 0,
                shido=self.bleu_shido or 0,
            ),
            timer=self.timer,
            osaekomi_actif=bool(self.osaekomi_actif),
            osaekomi_cote=self.osaekomi_cote,
            osaekomi_debut=self.osaekomi_debut,
            date_fin=self.date_fin,
            raison_fin=self.raison_fin,
            vainqueur=self.vainqueur,
        )

    def apply_score(self, score: BoutScore) -> None:
        """Write an engine result back onto the row (caller commits)."""
        self.etat = score.etat
        self.rouge_ippon = score.rouge.ippon
        self.rouge_wazari = score.rouge.wazari
        self.rouge_yuko = score.rouge.yuko
        self.rouge_shido = score.rouge.shido
        self.bleu_ippon = score.bleu.ippon
        self.bleu_wazari = score.bleu.wazari
        self.bleu_yuko = score.bleu.yuko
        self.bleu_shido = score.bleu.shido
        self.timer = score.timer
        self.osaekomi_actif = score.osaekomi_actif
        self.osaekomi_cote = score.osaekomi_cote
        self.osaekomi_debut = score.osaekomi_debut
        self.date_fin = score.date_fin
        self.raison_fin = score.raison_fin
        self.vainqueur = score.vainqueur

    def athlete_id(self, side: str) -> Optional[int]:
        return self.rouge_athlete_id if side == "rouge" else self.bleu_athlete_id
