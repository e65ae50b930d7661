"""Tool execution dispatch."""

import logging
from typing import Any, Dict, Optional

from scene import SceneError
from tools._common import ToolArgumentError, ToolContext, ToolResult
from tools.calls import (
    AddObject, CreatePlan, CreateTerrain, RemoveObject, SetMaterial, ToolCall,
    TransformObject, UnknownTool, parse_tool_call,
)
from tools import scene_ops

logger = logging.getLogger(__name__)


def run_tool_call(call: ToolCall, ctx: ToolContext) -> ToolResult:
    """Route a typed call to its handler. Handler errors propagate."""
    if isinstance(call, AddObject):
        return scene_ops.add_object(call, ctx)
    elif isinstance(call, RemoveObject):
        return scene_ops.remove_object(call, ctx)
    elif isinstance(call, TransformObject):
        return scene_ops.transform_object(call, ctx)
    elif isinstance(call, SetMaterial):
        return scene_ops.set_material(call, ctx)
    elif isinstance(call, CreateTerrain):
        return scene_ops.create_terrain(call, ctx)
    elif isinstance(call, CreatePlan):
        return scene_ops.create_plan(call, ctx)
    elif isinstance(call, UnknownTool):
        return {"error": f"Unknown tool: {call.name}"}
    raise TypeError(f"Unhandled tool call variant: {type(call).__name__}")


def execute_tool(
    name: str,
    inputs: Optional[Dict[str, Any]],
    ctx: ToolContext,
    tool_call_id: Optional[str] = None,
) -> ToolResult:
    """Execute a tool by name. Failures come back as {"error": ...} for the agent to read."""
    try:
        call = parse_tool_call(name, inputs, tool_call_id)
        return run_tool_call(call, ctx)
    except ToolArgumentError as e:
        logger.warning(f"Invalid arguments for {name}: {e}")
        return {"error": str(e)}
    except SceneError as e:
        logger.warning(f"Tool {name} failed: {e}")
        ctx.scene.log(f"AI: {e}", "warning")
        return {"error": str(e)}
    except Exception as e:
        logger.exception(f"Tool execution error: {name}")
        return {"error": f"Tool error: {e}"}
