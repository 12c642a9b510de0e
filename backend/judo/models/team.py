from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from judo.models.athlete import Athlete


class Team(SQLModel, table=True):
    # Ids are chosen by the organisers (club codes, e.g. "PSG"), not generated
    id: str = Field(primary_key=True)
    name: str
    color: str = Field(default="primary")
    points: int = Field(default=0)
    victoires: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    athletes: List["Athlete"] = Relationship(back_populates="team")

    @property
    def score_global(self) -> int:
        return self.points + self.victoires * 10
