"""Dispatch table from integration name to capability object."""

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Type

from ..common.exceptions import ConfigurationError, UnknownIntegration, ValidationError
from .airplay import AirplayIntegration
from .base import Integration
from .homebridge import HomebridgeIntegration
from .http import HttpIntegration
from .hue import HueIntegration

logger = logging.getLogger(__name__)

# Integration name reserved for profile switching
RESERVED_NAMES = frozenset({"profile"})

INTEGRATION_TYPES: Mapping[str, Type[Integration]] = MappingProxyType(
    {
        cls.kind: cls
        for cls in (HueIntegration, HomebridgeIntegration, HttpIntegration, AirplayIntegration)
    }
)


class DispatchTable:
    """Immutable mapping of integration name to integration"""

    def __init__(self, integrations: Iterable[Integration] = ()):
        table: Dict[str, Integration] = {}
        for integration in integrations:
            name = integration.identifier()
            if name in RESERVED_NAMES:
                raise ValidationError(f"Integration name {name} is reserved")
            if name in table:
                raise ValidationError(f"Duplicate integration name: {name}")
            table[name] = integration
        self._table = MappingProxyType(table)

    def get(self, name: str) -> Integration:
        try:
            return self._table[name]
        except KeyError:
            raise UnknownIntegration(name) from None

    def names(self) -> List[str]:
        return list(self._table)

    def __contains__(self, name: str) -> bool:
        return name in self._table

    def __iter__(self) -> Iterator[Integration]:
        return iter(self._table.values())

    def __len__(self) -> int:
        return len(self._table)

    async def close(self) -> None:
        for integration in self._table.values():
            try:
                await integration.close()
            except Exception as e:
                logger.error(f"Error closing integration {integration.name}: {e}")


async def build_dispatch_table(entries: Iterable[Dict[str, Any]]) -> DispatchTable:
    """Construct every configured integration

    An entry that fails to construct is logged and skipped.
    """
    integrations: List[Integration] = []
    seen = set()
    for entry in entries:
        settings = dict(entry)
        kind = settings.pop("type", None)
        name = settings.pop("name", None) or kind

        cls = INTEGRATION_TYPES.get(kind)
        if cls is None:
            logger.error(f"Unknown integration type {kind}, skipping")
            continue
        if name in seen or name in RESERVED_NAMES:
            logger.error(f"Integration name {name} is duplicate or reserved, skipping")
            continue

        try:
            integration = await cls.from_config(name, settings)
        except ConfigurationError as e:
            logger.error(f"Failed to configure integration {name}: {e}")
            continue
        except Exception as e:
            logger.error(f"Failed to initialize integration {name}: {e}")
            continue

        seen.add(name)
        integrations.append(integration)
        logger.info(f"Registered integration: {name} ({kind})")

    return DispatchTable(integrations)
