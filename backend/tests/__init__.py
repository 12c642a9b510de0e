# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from judo.models.athlete import Athlete  # noqa: F401
from judo.models.bout import Bout  # noqa: F401
from judo.models.bracket import BracketMatch  # noqa: F401
from judo.models.mat import Mat  # noqa: F401
from judo.models.pool import Pool, Rencontre  # noqa: F401
from judo.models.team import Team  # noqa: F401
