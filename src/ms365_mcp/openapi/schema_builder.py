"""Tool input schemas built from OpenAPI operations.

Every allow-listed operation gets a ParameterSpec: one field per path
variable and query parameter, a ``body`` passthrough for JSON write
operations, plus the fixed extras workbook and custom-parameter tools need.
A ParameterSpec compiles to a pydantic model that validates tool arguments and
renders the JSON schema advertised to MCP clients.
"""

import keyword
import re
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from ms365_mcp.endpoints import OperationDescriptor
from ms365_mcp.openapi.loader import OperationMetadata
from ms365_mcp.openapi.param_mapper import ParamMapping, create_friendly_param_name

PATH_VARIABLE = re.compile(r"\{([^}]+)\}")
ADDRESS_PLACEHOLDER = "{address}"
BODY_METHODS = ("post", "put", "patch")
JSON_CONTENT_TYPES = ("application/json", "*/*")

# Field locations
PATH = "path"
QUERY = "query"
BODY = "body"
CUSTOM = "custom"
WORKBOOK = "workbook"


@dataclass(frozen=True)
class ParamField:
    """A single tool argument.

    Attributes:
        annotation: Python type used for validation.
        required: Whether the caller must supply it.
        default: Value used when omitted (optional fields only).
        description: Shown to the client in the JSON schema.
        location: Where the handler puts it: path, query, body, custom or workbook.
    """

    annotation: Any
    required: bool = False
    default: Any = None
    description: str | None = None
    location: str = QUERY


# Extra fields for tools that take hand-picked arguments instead of a body
CUSTOM_PARAM_FIELDS: dict[str, dict[str, ParamField]] = {
    "upload-file": {
        "content": ParamField(
            str, required=True, description="File content to upload", location=CUSTOM
        ),
        "contentType": ParamField(
            str,
            description="Content type of the file (default: application/octet-stream)",
            location=CUSTOM,
        ),
    },
    "create-folder": {
        "name": ParamField(
            str, required=True, description="Name of the folder to create", location=CUSTOM
        ),
        "description": ParamField(
            str, description="Optional description for the folder", location=CUSTOM
        ),
    },
}


class _PassthroughModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, protected_namespaces=())


def _field_identifier(name: str, taken: set[str]) -> str:
    """Turn a wire-facing argument name into a usable pydantic field name."""
    ident = re.sub(r"\W", "_", name)
    if ident[:1].isdigit() or ident.startswith("_"):
        ident = f"p{ident}"
    if keyword.iskeyword(ident) or hasattr(BaseModel, ident) or ident.startswith("model_"):
        ident = f"{ident}_"
    base, n = ident, 2
    while ident in taken:
        ident = f"{base}{n}"
        n += 1
    taken.add(ident)
    return ident


class ParameterSpec:
    """Compiled argument schema for one tool.

    Attributes:
        tool_name: Tool these parameters belong to.
        fields: Argument name -> ParamField, in declaration order.
        mapping: Friendly query names -> wire names.
        model: Generated pydantic model.
    """

    def __init__(
        self,
        tool_name: str,
        fields: dict[str, ParamField],
        mapping: ParamMapping | None = None,
    ) -> None:
        self.tool_name = tool_name
        self.fields = dict(fields)
        self.mapping = mapping or ParamMapping()
        self.model = self._build_model()

    def _build_model(self) -> type[BaseModel]:
        taken: set[str] = set()
        definitions: dict[str, Any] = {}
        for name, spec in self.fields.items():
            ident = _field_identifier(name, taken)
            if spec.required:
                info = Field(..., alias=name, description=spec.description)
            else:
                info = Field(default=spec.default, alias=name, description=spec.description)
            annotation = spec.annotation if spec.required else spec.annotation | None
            definitions[ident] = (annotation, info)

        model_name = "".join(part.capitalize() for part in re.split(r"\W+", self.tool_name))
        return create_model(
            f"{model_name}Arguments",
            __config__=ConfigDict(populate_by_name=True, extra="ignore", protected_namespaces=()),
            **definitions,
        )

    def names_in(self, location: str) -> list[str]:
        return [name for name, spec in self.fields.items() if spec.location == location]

    def json_schema(self) -> dict[str, Any]:
        """JSON schema advertised as the tool's inputSchema."""
        return self.model.model_json_schema(by_alias=True)

    def validate(self, arguments: dict[str, Any] | None) -> dict[str, Any]:
        """Validate tool arguments.

        Args:
            arguments: Raw arguments from the client.

        Returns:
            Validated arguments keyed by argument name, omitted optionals dropped.

        Raises:
            pydantic.ValidationError: If arguments do not match the schema.
        """
        instance = self.model.model_validate(arguments or {})
        return instance.model_dump(by_alias=True, exclude_none=True)


def _ref_annotation(ref: str) -> Any:
    # Graph type names hint at the primitive they wrap
    ref_name = ref.rsplit("/", 1)[-1].lower()
    if "string" in ref_name or "date" in ref_name:
        return str
    if "int" in ref_name or "number" in ref_name:
        return float
    if "boolean" in ref_name:
        return bool
    if "array" in ref_name:
        return list[Any]
    return dict[str, Any]


def map_schema_type(schema: dict[str, Any] | None, name: str = "Object") -> Any:
    """Map an OpenAPI schema to a Python annotation.

    Args:
        schema: OpenAPI schema object.
        name: Name used for generated nested models.

    Returns:
        A type usable as a pydantic field annotation.
    """
    if not schema:
        return Any

    if "$ref" in schema:
        return _ref_annotation(schema["$ref"])

    schema_type = schema.get("type")
    if schema_type == "string":
        if schema.get("enum"):
            return Literal[tuple(schema["enum"])]
        return str
    if schema_type == "integer":
        return int
    if schema_type == "number":
        return float
    if schema_type == "boolean":
        return bool
    if schema_type == "array":
        return list[map_schema_type(schema.get("items") or {}, f"{name}Item")]
    if schema_type == "object":
        properties = schema.get("properties") or {}
        if not properties:
            return dict[str, Any]
        required = set(schema.get("required") or [])
        taken: set[str] = set()
        definitions: dict[str, Any] = {}
        for prop_name, prop_schema in properties.items():
            ident = _field_identifier(prop_name, taken)
            annotation = map_schema_type(prop_schema, f"{name}{ident.capitalize()}")
            if prop_name in required:
                definitions[ident] = (annotation, Field(..., alias=prop_name))
            else:
                definitions[ident] = (annotation | None, Field(default=None, alias=prop_name))
        return create_model(name, __base__=_PassthroughModel, **definitions)
    return Any


def _path_variables(path_pattern: str) -> list[str]:
    names = []
    for match in PATH_VARIABLE.finditer(path_pattern.replace(ADDRESS_PLACEHOLDER, "")):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def _json_body_schema(request_body: dict[str, Any]) -> dict[str, Any] | None:
    content = request_body.get("content") or {}
    for content_type in JSON_CONTENT_TYPES:
        media = content.get(content_type)
        if media and media.get("schema"):
            return media["schema"]
    return None


def build_parameter_spec(
    descriptor: OperationDescriptor, operation: OperationMetadata
) -> ParameterSpec:
    """Build the argument schema for an allow-listed operation.

    Args:
        descriptor: Allow-list entry.
        operation: Matching operation from the OpenAPI description.

    Returns:
        ParameterSpec; identical inputs give identical specs.
    """
    fields: dict[str, ParamField] = {}
    mapping = ParamMapping()

    path_variables = _path_variables(descriptor.path_pattern)
    for var in path_variables:
        fields[var] = ParamField(
            str, required=True, description=f"Path parameter: {var}", location=PATH
        )

    for param in operation.parameters_in("query"):
        if param.name in path_variables:
            continue
        friendly = create_friendly_param_name(param.name)
        mapping.register(friendly, param.name)
        fields[friendly] = ParamField(
            map_schema_type(param.param_schema, f"{friendly.capitalize()}Param"),
            required=param.required,
            description=param.description,
        )

    if descriptor.method in BODY_METHODS and operation.request_body:
        if _json_body_schema(operation.request_body) is not None:
            fields["body"] = ParamField(
                dict[str, Any],
                required=bool(operation.request_body.get("required"))
                and not descriptor.custom_params,
                description=operation.request_body.get("description") or "Request body",
                location=BODY,
            )

    if descriptor.workbook_session:
        fields["filePath"] = ParamField(
            str,
            required=True,
            description=(
                "Path to the Excel file in OneDrive (e.g. /Documents/Budget.xlsx). "
                "Must name the same workbook as drive-id and driveItem-id."
            ),
            location=WORKBOOK,
        )
        if ADDRESS_PLACEHOLDER in descriptor.path_pattern:
            fields["address"] = ParamField(
                str,
                required=True,
                description="Range address in A1 notation (e.g. A1:C10)",
                location=WORKBOOK,
            )

    if descriptor.custom_params:
        fields.update(CUSTOM_PARAM_FIELDS.get(descriptor.tool_name, {}))

    return ParameterSpec(descriptor.tool_name, fields, mapping)


def format_validation_error(err: ValidationError) -> str:
    """Render a pydantic error as one line naming each bad argument."""
    problems = []
    for error in err.errors():
        location = ".".join(str(part) for part in error["loc"]) or "arguments"
        problems.append(f"{location}: {error['msg']}")
    return "Invalid arguments: " + "; ".join(problems)
