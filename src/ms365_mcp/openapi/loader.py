"""OpenAPI description loader.

Reads the (trimmed) Microsoft Graph OpenAPI YAML into an operation table
keyed by path template and lower-case method. Path-level parameters are merged
into each operation and local ``#/components/parameters`` references are
resolved, so consumers only ever see concrete parameter objects.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from ms365_mcp.exceptions import SpecLoadError

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
PARAMETER_REF_PREFIX = "#/components/parameters/"


class ParameterMetadata(BaseModel):
    """A single operation parameter."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    location: str = Field(..., alias="in")
    required: bool = False
    description: str | None = None
    param_schema: dict[str, Any] = Field(default_factory=dict, alias="schema")


class OperationMetadata(BaseModel):
    """What the loader keeps of one OpenAPI operation."""

    parameters: list[ParameterMetadata] = Field(default_factory=list)
    request_body: dict[str, Any] | None = None
    summary: str | None = None
    description: str | None = None

    def parameters_in(self, location: str) -> list[ParameterMetadata]:
        return [p for p in self.parameters if p.location == location]


@dataclass
class OperationTable:
    """Operations indexed by path template, then method.

    Attributes:
        paths: ``{path: {method: OperationMetadata}}``.
    """

    paths: dict[str, dict[str, OperationMetadata]] = field(default_factory=dict)

    def __len__(self) -> int:
        return sum(len(methods) for methods in self.paths.values())


def _resolve_parameter(param: dict[str, Any], components: dict[str, Any]) -> dict[str, Any] | None:
    ref = param.get("$ref")
    if ref is None:
        return param
    if not ref.startswith(PARAMETER_REF_PREFIX):
        logger.warning(f"Unsupported parameter reference: {ref}")
        return None
    resolved = components.get(ref[len(PARAMETER_REF_PREFIX) :])
    if resolved is None:
        logger.warning(f"Unresolved parameter reference: {ref}")
    return resolved


def _merge_parameters(
    path_level: list[dict[str, Any]],
    op_level: list[dict[str, Any]],
    components: dict[str, Any],
) -> list[ParameterMetadata]:
    # Operation-level parameters override path-level ones with the same name+location
    merged: dict[tuple[str, str], ParameterMetadata] = {}
    for raw in [*path_level, *op_level]:
        resolved = _resolve_parameter(raw, components)
        if resolved is None:
            continue
        param = ParameterMetadata.model_validate(resolved)
        merged[(param.name, param.location)] = param
    return list(merged.values())


def load_spec(path: Path | str) -> OperationTable:
    """Load an OpenAPI YAML file into an operation table.

    Args:
        path: Location of the YAML description.

    Returns:
        OperationTable for every path and method in the file.

    Raises:
        SpecLoadError: If the file is missing or cannot be parsed.
    """
    spec_path = Path(path)
    try:
        with open(spec_path, encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except FileNotFoundError as err:
        raise SpecLoadError(f"OpenAPI description not found: {spec_path}") from err
    except (OSError, yaml.YAMLError) as err:
        raise SpecLoadError(f"Could not parse OpenAPI description {spec_path}: {err}") from err

    if not isinstance(document, dict) or not isinstance(document.get("paths"), dict):
        raise SpecLoadError(f"OpenAPI description {spec_path} has no paths section")

    components = document.get("components") or {}
    parameter_components = components.get("parameters") or {}

    table = OperationTable()
    for path_template, item in document["paths"].items():
        if not isinstance(item, dict):
            continue
        path_params = item.get("parameters") or []
        methods: dict[str, OperationMetadata] = {}
        for method, operation in item.items():
            if method not in HTTP_METHODS or not isinstance(operation, dict):
                continue
            methods[method] = OperationMetadata(
                parameters=_merge_parameters(
                    path_params, operation.get("parameters") or [], parameter_components
                ),
                request_body=operation.get("requestBody"),
                summary=operation.get("summary"),
                description=operation.get("description"),
            )
        table.paths[path_template] = methods

    logger.info(f"Loaded {len(table)} operations from {spec_path.name}")
    return table


def find_operation(table: OperationTable, path: str, method: str) -> OperationMetadata | None:
    """Look up an operation by exact path template and method.

    Args:
        table: Loaded operation table.
        path: Path template, e.g. ``/me/messages/{message-id}``.
        method: HTTP method, any case.

    Returns:
        The operation, or None if the table has no such path/method.
    """
    operation = table.paths.get(path, {}).get(method.lower())
    if operation is None:
        logger.warning(f"Operation {method.upper()} {path} not found in OpenAPI description")
    return operation
