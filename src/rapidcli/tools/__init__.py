"""
Tool definition builder for RapidCLI.

Tools exposed to the model are declared as plain data (a name, a description and a mapping of
parameter descriptions).  This module turns those declarations into the JSON-schema based
:class:`~rapidcli.core.schema.ToolDefinition` objects that are sent with every chat completion
request.  Dispatch lives elsewhere, so the schema shape and the handler code can change
independently.
"""

from typing import (
    Any,
    Dict,
    List,
    Mapping,
    NotRequired,
    TypedDict,
)

from rapidcli.core.schema import (
    ToolDefinition,
    ToolFunctionDefinition,
)


class ParameterInfo(TypedDict):
    """
    Information about a tool parameter.
    """

    type: str
    description: str
    required: bool
    minimum: NotRequired[int]


class ToolSchema(TypedDict):
    """
    Schema for a tool function
    """

    description: str
    parameters: Mapping[str, ParameterInfo]


def build_json_schema(parameters: Mapping[str, ParameterInfo]) -> Dict[str, Any]:
    """
    Convert parameter declarations into a JSON-schema ``object`` description.

    Parameters
    ----------
    parameters: Mapping[str, ParameterInfo]
        Parameter name to declaration, in the order they should be presented.

    Returns
    -------
    Dict[str, Any]
        ``{"type": "object", "properties": {...}, "required": [...]}``
    """
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for name, info in parameters.items():
        prop: Dict[str, Any] = {"type": info["type"], "description": info["description"]}
        if "minimum" in info:
            prop["minimum"] = info["minimum"]
        properties[name] = prop
        if info["required"]:
            required.append(name)
    return {"type": "object", "properties": properties, "required": required}


def build_tool_definition(name: str, schema: ToolSchema) -> ToolDefinition:
    """Build a single function tool definition."""
    return ToolDefinition(
        function=ToolFunctionDefinition(
            name=name,
            description=schema["description"],
            parameters=build_json_schema(schema["parameters"]),
        )
    )


def build_tool_definitions(schemas: Mapping[str, ToolSchema]) -> List[ToolDefinition]:
    """Build definitions for every schema, preserving declaration order."""
    return [build_tool_definition(name, schema) for name, schema in schemas.items()]
