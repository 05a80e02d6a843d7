"""Common exceptions for the Deckhand system."""


class DeckhandError(Exception):
    """Base exception for all Deckhand errors."""

    pass


class ValidationError(DeckhandError):
    """Input validation error."""

    pass


class ConfigurationError(DeckhandError):
    """Configuration error."""

    pass


class MalformedAction(DeckhandError):
    """Qualified action name or action options could not be parsed."""

    pass


class UnknownIntegration(DeckhandError):
    """No integration is registered under the requested name."""

    def __init__(self, name: str):
        super().__init__(f"unknown integration {name}")
        self.name = name


class UnknownProfile(DeckhandError):
    """Profile lookup failed."""

    def __init__(self, name: str):
        super().__init__(f"profile {name} not found")
        self.name = name


class UnknownButton(DeckhandError):
    """Button index is out of range for a profile."""

    def __init__(self, profile: str, index: int):
        super().__init__(f"button {index} not found in profile {profile}")
        self.profile = profile
        self.index = index


class IntegrationError(DeckhandError):
    """Vendor call made by an integration failed."""

    pass


class FetchError(DeckhandError):
    """Icon source could not be fetched."""

    pass


class RenderError(DeckhandError):
    """Icon could not be decoded, composited or encoded."""

    pass


class SessionNotFound(DeckhandError):
    """Target client session is not registered."""

    pass


class RequestTimeout(DeckhandError):
    """Caller gave up waiting for an execution request to complete."""

    pass
