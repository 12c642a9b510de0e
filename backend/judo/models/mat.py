from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel

MAT_FREE = "libre"
MAT_BUSY = "occupé"
MAT_PAUSED = "pause"
MAT_STATES = (MAT_FREE, MAT_BUSY, MAT_PAUSED)


class Mat(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    etat: str = Field(default=MAT_FREE)  # "libre" | "occupé" | "pause"

    # Ordered bout queue and the pointer to the bout currently on the mat
    bout_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    index_combat_actuel: int = Field(default=0)

    # Aggregate technical points of the two sides across finished bouts
    score_confrontation: Dict[str, int] = Field(
        default_factory=lambda: {"rouge": 0, "bleu": 0}, sa_column=Column(JSON, nullable=False)
    )
    # Append-only log of pointer / assignment / state changes
    historique: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    created_at: datetime = Field(default_factory=datetime.utcnow)

    def current_bout_id(self) -> Optional[int]:
        ids = self.bout_ids or []
        if 0 <= self.index_combat_actuel < len(ids):
            return ids[self.index_combat_actuel]
        return None
