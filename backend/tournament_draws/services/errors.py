"""
Error taxonomy for the draw engine.

Services raise these; routes translate them to HTTP status codes.
Conflicts found by the detector are results, not errors.
"""
from typing import Iterable, List, Optional


class DrawEngineError(Exception):
    """Base exception for draw engine errors"""
    pass


class ConfigurationError(DrawEngineError):
    """Invalid round count, qualifier count or draw size. Raised before any mutation."""
    pass


class PreconditionError(DrawEngineError):
    """Operation cannot run yet: round incomplete, draw exists, bracket built, ..."""
    pass


class PairingFailure(DrawEngineError):
    """No valid pairing could be produced for the listed entries"""

    def __init__(self, message: str, entry_ids: Optional[Iterable[int]] = None):
        super().__init__(message)
        self.entry_ids: List[int] = list(entry_ids or [])
