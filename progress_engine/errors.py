"""
Error kinds raised by the progress engine
"""


class ProgressEngineError(Exception):
    """Base class for every error the engine reports to its caller"""


class InvalidInput(ProgressEngineError):
    """Malformed request: unknown rating, event type or answer payload"""


class NotFound(ProgressEngineError):
    """Referenced content item or user profile does not exist"""


class ConcurrencyConflict(ProgressEngineError):
    """An optimistic write lost a race; the whole interaction must be retried"""


class CorruptState(ProgressEngineError):
    """A stored record violates an invariant and will not be repaired"""


class SectionLocked(InvalidInput):
    """Interaction targets a section the learner cannot open yet"""

    def __init__(self, message: str, section_id: str, blocking_section_id: str | None = None):
        super().__init__(message)
        self.section_id = section_id
        self.blocking_section_id = blocking_section_id
