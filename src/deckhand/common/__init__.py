"""Common utilities for the Deckhand system."""

from .exceptions import DeckhandError, ValidationError, ConfigurationError

__all__ = ["DeckhandError", "ValidationError", "ConfigurationError"]
