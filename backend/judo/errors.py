"""
Domain errors raised by the scoring, standings and mat services.

Services never return error dicts; they raise one of these and the API layer
(see main.py) turns them into JSON responses.
"""
from typing import Any, Dict, Optional


class TournamentError(Exception):
    """Base class for tournament domain failures."""

    status_code = 400
    kind = "tournament_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "error": self.kind}
        if self.details:
            body["details"] = self.details
        return body


class NotFound(TournamentError):
    """Referenced entity id does not resolve."""

    status_code = 404
    kind = "not_found"


class InvalidState(TournamentError):
    """Operation not permitted in the entity's current state."""

    status_code = 409
    kind = "invalid_state"


class InvalidArgument(TournamentError):
    """Malformed enum value, missing field or bad correction target."""

    status_code = 422
    kind = "invalid_argument"


class OutOfRange(TournamentError):
    """Mat pointer already at a boundary."""

    status_code = 409
    kind = "out_of_range"


class Conflict(TournamentError):
    """Duplicate id or delete blocked by a live reference."""

    status_code = 409
    kind = "conflict"
