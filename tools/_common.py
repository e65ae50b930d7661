"""Shared types for the tools package."""

from dataclasses import dataclass
from typing import Any, Dict, Optional


class ToolArgumentError(Exception):
    """Tool call arguments are missing or malformed"""
    pass


@dataclass
class ToolContext:
    """Collaborators a tool handler may touch."""
    scene: Any  # scene.Scene
    plans: Any  # agent.plan.PlanStore
    conversation_id: Optional[str] = None


ToolResult = Dict[str, Any]
