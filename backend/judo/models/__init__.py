from judo.models.athlete import Athlete
from judo.models.bout import Bout
from judo.models.bracket import BracketMatch
from judo.models.mat import Mat
from judo.models.pool import Pool, Rencontre
from judo.models.team import Team

__all__ = [
    "Athlete",
    "Bout",
    "BracketMatch",
    "Mat",
    "Pool",
    "Rencontre",
    "Team",
]
