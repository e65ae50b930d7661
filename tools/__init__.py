"""
Tool definitions and implementations for the scene agent.
Each tool has an Anthropic-compatible schema, a typed call variant, and a
handler that mutates the scene (or proposes a plan).
"""

from tools._common import ToolArgumentError, ToolContext, ToolResult  # noqa: F401
from tools.calls import (  # noqa: F401
    AddObject,
    RemoveObject,
    TransformObject,
    SetMaterial,
    CreateTerrain,
    CreatePlan,
    UnknownTool,
    ToolCall,
    parse_tool_call,
)
from tools.schemas import (  # noqa: F401
    TOOL_DEFINITIONS,
    TOOL_NAMES,
    SCENE_TOOLS,
    CREATE_PLAN_NAME,
)
from tools.dispatch import execute_tool, run_tool_call  # noqa: F401
