from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

import mcp.types as types

from toolbridge.registry.schema import InputSchema, SchemaError
from toolbridge.utils.logging import get_logger

logger = get_logger(__name__)

# Uniform handler contract: (arguments) -> ToolResult, awaited by the dispatch engine.
ToolHandler = Callable[[Mapping[str, Any]], Awaitable[Any]]


class RegistryError(RuntimeError):
    """Raised at startup when the catalogue cannot be built."""


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: InputSchema
    handler: ToolHandler

    def descriptor(self) -> Dict[str, Any]:
        """Client-visible discovery entry."""
        tool = types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema.to_json_schema(),
        )
        return tool.model_dump(by_alias=True, exclude_none=True)


class CapabilityRegistry:
    """
    Name -> ToolDefinition mapping, built once at startup.

    Registration order is preserved for discovery. After freeze() the registry
    is read-only, so concurrent lookups need no locking.
    """

    def __init__(self) -> None:
        self._tools: Dict[str, ToolDefinition] = {}
        self._frozen = False

    def register(self, definition: ToolDefinition) -> None:
        if self._frozen:
            raise RegistryError(f"Registry is frozen; cannot register '{definition.name}'")

        name = (definition.name or "").strip()
        if not name or name != definition.name:
            raise RegistryError(f"Invalid tool name: {definition.name!r}")
        if name in self._tools:
            raise RegistryError(f"Duplicate tool name: {name}")
        if not callable(definition.handler):
            raise RegistryError(f"Tool '{name}' handler is not callable")

        try:
            definition.input_schema.check()
        except SchemaError as e:
            raise RegistryError(f"Tool '{name}' has a malformed input schema: {e}") from e

        self._tools[name] = definition
        logger.debug("registered tool=%s fields=%s", name, [f.name for f in definition.input_schema.fields])

    def freeze(self) -> "CapabilityRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, name: Any) -> Optional[ToolDefinition]:
        if not isinstance(name, str):
            return None
        return self._tools.get(name)

    def list(self) -> List[Dict[str, Any]]:
        return [d.descriptor() for d in self._tools.values()]

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
