"""
Tournament configuration.

Defaults live in the pydantic models below. An optional JSON file
(JUDO_CONFIG_PATH) is deep-merged over them at load time, so a file only needs
the keys it overrides:

    {"combat": {"osaekomi": {"yuko": 5, "wazari": 10}}, "poules": {"points_victoire": 3}}

Routes receive the active config through the get_config() dependency.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

load_dotenv()

logger = logging.getLogger(__name__)


class OsaekomiThresholds(BaseModel):
    """Hold-down durations (seconds) converting into yuko / wazari / ippon."""

    yuko: int = 10
    wazari: int = 15
    ippon: int = 20


class ScoreThresholds(BaseModel):
    wazari_for_ippon: int = 2
    shido_for_defeat: int = 3


class PointValues(BaseModel):
    """Technical point weights used for confrontation and standings totals."""

    ippon: int = 100
    wazari: int = 10
    yuko: int = 1


class CombatConfig(BaseModel):
    duree_par_defaut: int = 240
    duree_golden_score: int = 180
    enable_golden_score: bool = True
    osaekomi: OsaekomiThresholds = Field(default_factory=OsaekomiThresholds)
    thresholds: ScoreThresholds = Field(default_factory=ScoreThresholds)
    points: PointValues = Field(default_factory=PointValues)


class PoolConfig(BaseModel):
    max_equipes_par_poule: int = 10
    min_equipes_par_poule: int = 2
    max_poules: int = 10
    points_victoire: int = 1
    points_defaite: int = 0
    points_egalite: int = 0


class MatConfig(BaseModel):
    nombre_max: int = 10


class AthleteConfig(BaseModel):
    categories_poids: Dict[str, List[str]] = Field(
        default_factory=lambda: {
            "M": ["-60", "-66", "-73", "-81", "-90", "+90"],
            "F": ["-48", "-52", "-57", "-63", "-70", "+70"],
        }
    )
    max_combattants_par_equipe: int = 20

    def categories_for(self, sex: str) -> List[str]:
        return self.categories_poids.get(sex, [])


class TournamentConfig(BaseModel):
    name: str = "Judo Tournament"
    combat: CombatConfig = Field(default_factory=CombatConfig)
    poules: PoolConfig = Field(default_factory=PoolConfig)
    tatamis: MatConfig = Field(default_factory=MatConfig)
    combattants: AthleteConfig = Field(default_factory=AthleteConfig)

    @model_validator(mode="after")
    def _check_consistency(self) -> "TournamentConfig":
        errors = []
        osaekomi = self.combat.osaekomi
        if not (osaekomi.yuko < osaekomi.wazari < osaekomi.ippon):
            errors.append("osaekomi thresholds must satisfy yuko < wazari < ippon")
        if not 60 <= self.combat.duree_par_defaut <= 600:
            errors.append("combat duration must be within 60-600 seconds")
        if self.poules.min_equipes_par_poule < 2:
            errors.append("a pool needs at least 2 teams")
        if not 1 <= self.tatamis.nombre_max <= 20:
            errors.append("mat count must be within 1-20")
        if self.combat.thresholds.wazari_for_ippon < 1 or self.combat.thresholds.shido_for_defeat < 1:
            errors.append("score thresholds must be positive")
        if errors:
            raise ValueError("; ".join(errors))
        return self


def merge_deep(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge overrides into a copy of base. Lists are replaced, not merged."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_deep(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[str] = None) -> TournamentConfig:
    """Build the config from defaults plus the optional JSON override file.

    Raises ValueError (pydantic ValidationError) on inconsistent values and
    json.JSONDecodeError on a malformed file.
    """
    path = path or os.getenv("JUDO_CONFIG_PATH")
    defaults = TournamentConfig().model_dump()
    if not path:
        return TournamentConfig.model_validate(defaults)

    config_file = Path(path)
    if not config_file.is_file():
        logger.warning("Config file %s not found, using defaults", path)
        return TournamentConfig.model_validate(defaults)

    overrides = json.loads(config_file.read_text(encoding="utf-8"))
    config = TournamentConfig.model_validate(merge_deep(defaults, overrides))
    logger.info("Loaded tournament config from %s", path)
    return config


_config: Optional[TournamentConfig] = None


def get_config() -> TournamentConfig:
    """FastAPI dependency returning the process-wide config."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[TournamentConfig]) -> None:
    """Replace (or with None, drop) the cached config."""
    global _config
    _config = config
