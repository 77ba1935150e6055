"""Strata engine — session registry, coordination loop and configuration."""
from .errors import (
    DiffUnavailableError,
    MalformedEventError,
    MissingContentError,
    NoActiveRequestError,
    StrataError,
    UnknownSessionError,
)
from .lifecycle import ResponseState

__all__ = [
    "Coordinator",
    "SessionManager",
    "StrataConfig",
    "ResponseState",
    # Errors
    "StrataError",
    "MalformedEventError",
    "MissingContentError",
    "DiffUnavailableError",
    "NoActiveRequestError",
    "UnknownSessionError",
]


def __getattr__(name: str):
    # Lazy imports: these modules import shared models, which import errors.
    if name == "StrataConfig":
        from .config import StrataConfig
        return StrataConfig
    if name == "Coordinator":
        from .coordinator import Coordinator
        return Coordinator
    if name == "SessionManager":
        from .session_manager import SessionManager
        return SessionManager
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
