"""OpenAPI description loading and tool schema generation."""

from ms365_mcp.openapi.loader import (
    OperationMetadata,
    OperationTable,
    ParameterMetadata,
    find_operation,
    load_spec,
)
from ms365_mcp.openapi.param_mapper import ParamMapping, create_friendly_param_name
from ms365_mcp.openapi.schema_builder import (
    ParameterSpec,
    ParamField,
    build_parameter_spec,
    map_schema_type,
)

__all__ = [
    "OperationMetadata",
    "OperationTable",
    "ParameterMetadata",
    "ParamField",
    "ParamMapping",
    "ParameterSpec",
    "build_parameter_spec",
    "create_friendly_param_name",
    "find_operation",
    "load_spec",
    "map_schema_type",
]
