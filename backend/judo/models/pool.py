from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

RENCONTRE_PLANNED = "prevue"
RENCONTRE_ASSIGNED = "assignee"


class Pool(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    team_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    # Computed ranking rows (see services.standings_service.TeamRecord)
    classement: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    derniere_mise_a_jour: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    rencontres: List["Rencontre"] = Relationship(
        back_populates="pool",
        sa_relationship_kwargs={"order_by": "Rencontre.id", "cascade": "all, delete-orphan"},
    )


class Rencontre(SQLModel, table=True):
    """Team-vs-team confrontation inside a pool, backed by one bout per shared category."""

    id: Optional[int] = Field(default=None, primary_key=True)
    pool_id: int = Field(foreign_key="pool.id", index=True)
    equipe_a: str = Field(foreign_key="team.id")
    equipe_b: str = Field(foreign_key="team.id")
    bout_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    etat: str = Field(default=RENCONTRE_PLANNED)  # "prevue" | "assignee"

    # Relationships
    pool: Optional[Pool] = Relationship(back_populates="rencontres")

    def involves(self, team_x: Optional[str], team_y: Optional[str]) -> bool:
        return {self.equipe_a, self.equipe_b} == {team_x, team_y}
