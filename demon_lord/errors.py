"""Error taxonomy for the turn engine.

    GenerationError    a collaborator call failed or timed out; the
                       orchestrator isolates it and substitutes a fallback
    ParseFailure       a collaborator answered, but not with well-formed
                       structured data
    InvalidInputError  the turn is rejected before anything is mutated
    TurnError          something broke inside Commit; the only error that
                       aborts a turn
"""


class GameError(Exception):
    """Base class for all game engine errors."""


class GenerationError(GameError):
    """A content-generation collaborator failed."""


class ParseFailure(GenerationError):
    """A collaborator's structured response could not be parsed."""


class InvalidInputError(GameError):
    """An action or request violates basic preconditions."""


class TurnError(GameError):
    """Unexpected failure while committing a turn."""
