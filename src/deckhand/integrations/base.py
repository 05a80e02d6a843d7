"""Integration capability contract."""

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Type, TypeVar

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as ModelValidationError

from ..common.exceptions import ConfigurationError, MalformedAction

logger = logging.getLogger(__name__)

SettingsT = TypeVar("SettingsT", bound=BaseModel)


class Integration(ABC):
    """Wraps one vendor's control surface behind execute(action, options)

    Subclasses declare ``kind`` (the config ``type``) and ``actions``, a
    TypeAdapter over the tagged union of their action payloads keyed by the
    ``action`` field.
    """

    kind: ClassVar[str]
    actions: ClassVar[TypeAdapter]

    def __init__(self, name: str):
        self.name = name

    def identifier(self) -> str:
        return self.name

    def decode(self, options: Dict[str, Any]) -> Any:
        """Decode an options payload into this integration's action type"""
        try:
            return self.actions.validate_python(options)
        except ModelValidationError as e:
            raise MalformedAction(
                f"invalid options for {self.name}::{options.get('action')}: {e}"
            ) from e

    @abstractmethod
    async def execute(self, action: str, options: Dict[str, Any]) -> None:
        """Run one action, raising IntegrationError on vendor failure"""

    @classmethod
    @abstractmethod
    async def from_config(
        cls, name: str, settings: Dict[str, Any]
    ) -> "Integration":
        """Construct from a config entry (minus ``type`` and ``name``)"""

    async def close(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def parse_settings(model: Type[SettingsT], kind: str, settings: Dict[str, Any]) -> SettingsT:
    try:
        return model.model_validate(settings)
    except ModelValidationError as e:
        raise ConfigurationError(f"Invalid {kind} integration settings: {e}") from e
