from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from judo.models.team import Team


class Athlete(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    sex: str  # "M" | "F"
    weight: str  # category code for the sex, e.g. "-73", "+70"
    team_id: str = Field(foreign_key="team.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    team: Optional["Team"] = Relationship(back_populates="athletes")

    @property
    def category(self) -> str:
        return f"{self.sex}{self.weight}"
