"""The allow-list of Graph operations exposed as MCP tools.

Each entry names a path template and method from the packaged OpenAPI
description, the tool name it is published under, the permission scopes it
needs, and a few behaviour flags:

- ``workbookSession``: the call is routed through an Excel workbook session.
- ``customParams``: the tool takes hand-picked fields instead of a raw body.
- ``rawResponse``: the response body is returned as-is instead of as JSON.
"""

import json
import logging
from importlib import resources
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

DATA_PACKAGE = "ms365_mcp.data"
ENDPOINTS_FILE = "endpoints.json"
OPENAPI_FILE = "openapi.yaml"


class OperationDescriptor(BaseModel):
    """One allow-listed Graph operation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path_pattern: str = Field(..., alias="pathPattern")
    method: str
    tool_name: str = Field(..., alias="toolName")
    scopes: tuple[str, ...] = ()
    workbook_session: bool = Field(default=False, alias="workbookSession")
    custom_params: bool = Field(default=False, alias="customParams")
    raw_response: bool = Field(default=False, alias="rawResponse")

    @field_validator("method")
    @classmethod
    def _lower_method(cls, value: str) -> str:
        # OpenAPI operation keys are lower-case
        return value.lower()

    @property
    def is_read_only(self) -> bool:
        return self.method == "get"


def get_openapi_path() -> Path:
    """Get the location of the packaged OpenAPI description.

    Returns:
        Path to openapi.yaml inside the installed package.
    """
    return Path(str(resources.files(DATA_PACKAGE).joinpath(OPENAPI_FILE)))


def load_endpoints(path: Path | None = None) -> list[OperationDescriptor]:
    """Load the endpoint allow-list.

    Args:
        path: Alternative JSON file. Defaults to the packaged endpoints.json.

    Returns:
        Descriptors in file order.
    """
    if path is None:
        raw = resources.files(DATA_PACKAGE).joinpath(ENDPOINTS_FILE).read_text(encoding="utf-8")
    else:
        raw = path.read_text(encoding="utf-8")

    endpoints = [OperationDescriptor.model_validate(entry) for entry in json.loads(raw)]
    logger.debug(f"Loaded {len(endpoints)} endpoint descriptors")
    return endpoints


TARGET_ENDPOINTS: list[OperationDescriptor] = load_endpoints()
OPENAPI_PATH: Path = get_openapi_path()
