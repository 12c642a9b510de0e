from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel

BRACKET_PRINCIPAL = "principal"
BRACKET_CONSOLATION = "consolante"
BRACKET_BRONZE = "bronze"
BRACKET_TYPES = (BRACKET_PRINCIPAL, BRACKET_CONSOLATION, BRACKET_BRONZE)

PHASES = ("seizieme", "huitieme", "quart", "demi", "finale")


class BracketMatch(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("bracket_type", "phase", "match_number", name="uq_bracket_match_slot"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    bracket_type: str  # "principal" | "consolante" | "bronze"
    phase: str  # one of PHASES, "bronze" for bronze matches
    match_number: int  # 1-based within the phase

    # Team slots (nullable until a previous phase resolves)
    equipe_a: Optional[str] = Field(default=None, foreign_key="team.id")
    equipe_b: Optional[str] = Field(default=None, foreign_key="team.id")

    score_a: int = Field(default=0)
    score_b: int = Field(default=0)
    vainqueur: Optional[str] = Field(default=None)  # "A" | "B"
    has_bye: bool = Field(default=False)
    description: Optional[str] = Field(default=None)

    bout_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    assigned: bool = Field(default=False)
    mat_id: Optional[int] = Field(default=None, foreign_key="mat.id")
    date_assignation: Optional[datetime] = Field(default=None)
    date_fin_match: Optional[datetime] = Field(default=None)

    def winner_team(self) -> Optional[str]:
        if self.vainqueur == "A":
            return self.equipe_a
        if self.vainqueur == "B":
            return self.equipe_b
        return None

    def loser_team(self) -> Optional[str]:
        if self.vainqueur == "A":
            return self.equipe_b
        if self.vainqueur == "B":
            return self.equipe_a
        return None
