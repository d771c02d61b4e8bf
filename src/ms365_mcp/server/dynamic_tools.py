"""MCP tools generated from the endpoint allow-list.

Each allow-listed Graph operation found in the OpenAPI description becomes a
tool: its arguments come from build_parameter_spec and its handler turns
validated arguments into a Graph request URL and body, then delegates to the
GraphClient.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from mcp.types import CallToolResult

from ms365_mcp.endpoints import OperationDescriptor
from ms365_mcp.openapi.loader import OperationTable, find_operation
from ms365_mcp.openapi.schema_builder import (
    ADDRESS_PLACEHOLDER,
    BODY_METHODS,
    PATH,
    QUERY,
    ParameterSpec,
    build_parameter_spec,
)
from ms365_mcp.server.graph_client import GraphClient
from ms365_mcp.server.results import error_result
from ms365_mcp.server.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

# encodeURIComponent-compatible unreserved set
URI_COMPONENT_SAFE = "-_.!~*'()"
DEFAULT_UPLOAD_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class MissingEndpoint:
    """An allow-listed operation absent from the OpenAPI description."""

    tool_name: str
    path_pattern: str
    method: str

    def __str__(self) -> str:
        return f"{self.tool_name} ({self.method.upper()} {self.path_pattern})"


@dataclass(frozen=True)
class RequestPlan:
    """What a tool invocation sends to the GraphClient."""

    path: str
    method: str
    body: str | bytes | None = None
    headers: dict[str, str] | None = None


def encode_component(value: Any) -> str:
    """URL-encode a single path or query value."""
    if isinstance(value, bool):
        value = "true" if value else "false"
    return quote(str(value), safe=URI_COMPONENT_SAFE)


def validate_endpoints(
    endpoints: list[OperationDescriptor], table: OperationTable
) -> list[MissingEndpoint]:
    """Find allow-listed operations the description does not contain.

    Args:
        endpoints: Allow-list entries.
        table: Loaded OpenAPI operations.

    Returns:
        One record per unresolvable entry, in allow-list order.
    """
    missing = []
    for endpoint in endpoints:
        if find_operation(table, endpoint.path_pattern, endpoint.method) is None:
            record = MissingEndpoint(endpoint.tool_name, endpoint.path_pattern, endpoint.method)
            logger.warning(f"Endpoint not found in OpenAPI description: {record}")
            missing.append(record)
    return missing


def build_request_url(
    path_pattern: str,
    params: dict[str, Any],
    spec: ParameterSpec,
    flatten_arrays: bool = True,
) -> str:
    """Substitute path variables and append query parameters.

    Args:
        path_pattern: Path template from the allow-list.
        params: Validated tool arguments.
        spec: The tool's parameter spec (locations and wire names).
        flatten_arrays: Comma-join array values; otherwise repeat the key.

    Returns:
        Path with query string, relative to the Graph base URL.
    """
    url = path_pattern
    for name in spec.names_in(PATH):
        url = url.replace(f"{{{name}}}", encode_component(params[name]))

    if ADDRESS_PLACEHOLDER in url and "address" in params:
        url = url.replace(ADDRESS_PLACEHOLDER, encode_component(params["address"]))

    query: list[str] = []
    for friendly in spec.names_in(QUERY):
        if friendly not in params:
            continue
        wire_name = spec.mapping.to_original(friendly)
        value = params[friendly]
        if isinstance(value, list):
            encoded = [encode_component(item) for item in value]
            if flatten_arrays:
                query.append(f"{wire_name}={','.join(encoded)}")
            else:
                query.extend(f"{wire_name}={item}" for item in encoded)
        else:
            query.append(f"{wire_name}={encode_component(value)}")

    if query:
        url = f"{url}?{'&'.join(query)}"
    return url


def _upload_body(params: dict[str, Any]) -> tuple[str, dict[str, str]]:
    content_type = params.get("contentType") or DEFAULT_UPLOAD_CONTENT_TYPE
    return params["content"], {"Content-Type": content_type}


def _create_folder_body(params: dict[str, Any]) -> tuple[str, dict[str, str]]:
    payload: dict[str, Any] = {
        "name": params["name"],
        "folder": {},
        "@microsoft.graph.conflictBehavior": "rename",
    }
    if params.get("description"):
        payload["description"] = params["description"]
    return json.dumps(payload), {"Content-Type": "application/json"}


# Tools whose body is built from hand-picked arguments
CUSTOM_BODY_BUILDERS = {
    "upload-file": _upload_body,
    "create-folder": _create_folder_body,
}


def plan_request(
    descriptor: OperationDescriptor,
    spec: ParameterSpec,
    params: dict[str, Any],
    flatten_arrays: bool = True,
) -> RequestPlan:
    """Turn validated arguments into the request to send."""
    path = build_request_url(descriptor.path_pattern, params, spec, flatten_arrays)
    method = descriptor.method.upper()

    builder = CUSTOM_BODY_BUILDERS.get(descriptor.tool_name) if descriptor.custom_params else None
    if builder is not None:
        body, headers = builder(params)
        return RequestPlan(path, method, body=body, headers=headers)

    if descriptor.method in BODY_METHODS and params.get("body") is not None:
        return RequestPlan(path, method, body=json.dumps(params["body"]))

    return RequestPlan(path, method)


def make_handler(
    descriptor: OperationDescriptor,
    spec: ParameterSpec,
    graph_client: GraphClient,
    flatten_arrays: bool = True,
):
    """Build the coroutine that serves one generated tool."""

    async def handler(params: dict[str, Any]) -> CallToolResult:
        if descriptor.workbook_session and not params.get("filePath"):
            return error_result("filePath parameter is required for workbook operations")

        plan = plan_request(descriptor, spec, params, flatten_arrays)
        return await graph_client.request(
            plan.path,
            method=plan.method,
            headers=plan.headers,
            body=plan.body,
            workbook_file=params.get("filePath") if descriptor.workbook_session else None,
            raw_response=descriptor.raw_response,
        )

    return handler


def register_dynamic_tools(
    endpoints: list[OperationDescriptor],
    table: OperationTable,
    registry: ToolRegistry,
    graph_client: GraphClient,
    read_only: bool = False,
    flatten_arrays: bool = True,
) -> list[str]:
    """Register one tool per resolvable allow-listed operation.

    Args:
        endpoints: Allow-list entries, registered in this order.
        table: Loaded OpenAPI operations.
        registry: Registry receiving the tools.
        graph_client: Client the handlers delegate to.
        read_only: Skip every non-GET operation.
        flatten_arrays: Comma-join array query values.

    Returns:
        Names of the registered tools.
    """
    logger.info("Generating dynamic tools from OpenAPI description...")
    registered = []
    for descriptor in endpoints:
        if read_only and not descriptor.is_read_only:
            logger.debug(f"Skipping {descriptor.tool_name} in read-only mode")
            continue

        operation = find_operation(table, descriptor.path_pattern, descriptor.method)
        if operation is None:
            continue

        logger.debug(
            f"Creating tool {descriptor.tool_name} for "
            f"{descriptor.method.upper()} {descriptor.path_pattern}"
        )
        spec = build_parameter_spec(descriptor, operation)
        registry.tool(
            descriptor.tool_name,
            spec,
            make_handler(descriptor, spec, graph_client, flatten_arrays),
            description=operation.description or operation.summary or descriptor.tool_name,
            read_only=descriptor.is_read_only,
        )
        registered.append(descriptor.tool_name)

    logger.info(f"Registered {len(registered)} dynamic tools")
    return registered
