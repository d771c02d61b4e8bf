"""Friendly parameter names for OData query options.

Graph query options such as ``$filter`` and ``$top`` are exposed to tool
callers without the ``$`` prefix. Each registered tool keeps its own mapping
back to the wire names.
"""


def create_friendly_param_name(name: str) -> str:
    """Strip one leading ``$`` from a parameter name.

    Args:
        name: Parameter name as it appears in the OpenAPI description.

    Returns:
        The name without its ``$`` prefix; other names are unchanged.
    """
    return name[1:] if name.startswith("$") else name


class ParamMapping:
    """Per-tool mapping from friendly parameter names to wire names."""

    def __init__(self) -> None:
        self._to_original: dict[str, str] = {}

    def register(self, friendly: str, original: str) -> None:
        self._to_original[friendly] = original

    def to_original(self, friendly: str) -> str:
        """Wire name for a friendly name; unknown names map to themselves."""
        return self._to_original.get(friendly, friendly)

    def __contains__(self, friendly: str) -> bool:
        return friendly in self._to_original

    def __len__(self) -> int:
        return len(self._to_original)
