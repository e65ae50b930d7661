"""
Typed tool-call variants.

Every tool the agent may call has one dataclass here; parse_tool_call turns a
raw (name, args) pair from the stream into a variant, falling back to
UnknownTool for names outside the closed set.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from agent.plan import PlanData
from tools._common import ToolArgumentError

Vec3 = Optional[List[float]]


@dataclass
class AddObject:
    name: str
    primitive: str
    position: Vec3 = None
    color: Optional[str] = None
    metalness: Optional[float] = None
    roughness: Optional[float] = None


@dataclass
class RemoveObject:
    id: str


@dataclass
class TransformObject:
    id: str
    position: Vec3 = None
    rotation: Vec3 = None
    scale: Vec3 = None


@dataclass
class SetMaterial:
    id: str
    color: Optional[str] = None
    metalness: Optional[float] = None
    roughness: Optional[float] = None
    opacity: Optional[float] = None


@dataclass
class CreateTerrain:
    name: str
    width: Optional[float] = None
    depth: Optional[float] = None
    height_scale: Optional[float] = None
    segments: Optional[int] = None
    seed: Optional[int] = None
    octaves: Optional[int] = None
    biome: Optional[str] = None
    position: Vec3 = None


@dataclass
class CreatePlan:
    plan: PlanData
    tool_call_id: Optional[str] = None


@dataclass
class UnknownTool:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


ToolCall = Union[AddObject, RemoveObject, TransformObject, SetMaterial, CreateTerrain, CreatePlan, UnknownTool]


def _required(args: Dict[str, Any], key: str, tool: str) -> Any:
    value = args.get(key)
    if value is None or value == "":
        raise ToolArgumentError(f"{tool}: missing required argument '{key}'")
    return value


def _vec3(args: Dict[str, Any], key: str, tool: str) -> Vec3:
    value = args.get(key)
    if value is None:
        return None
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        raise ToolArgumentError(f"{tool}: '{key}' must be [x, y, z]")
    try:
        return [float(v) for v in value]
    except (TypeError, ValueError):
        raise ToolArgumentError(f"{tool}: '{key}' must contain numbers")


def parse_tool_call(name: str, args: Optional[Dict[str, Any]], tool_call_id: Optional[str] = None) -> ToolCall:
    """Build the typed variant for a raw tool call."""
    args = args or {}

    if name == "addObject":
        return AddObject(
            name=_required(args, "name", name),
            primitive=_required(args, "primitive", name),
            position=_vec3(args, "position", name),
            color=args.get("color"),
            metalness=args.get("metalness"),
            roughness=args.get("roughness"),
        )
    if name == "removeObject":
        return RemoveObject(id=_required(args, "id", name))
    if name == "transformObject":
        return TransformObject(
            id=_required(args, "id", name),
            position=_vec3(args, "position", name),
            rotation=_vec3(args, "rotation", name),
            scale=_vec3(args, "scale", name),
        )
    if name == "setMaterial":
        return SetMaterial(
            id=_required(args, "id", name),
            color=args.get("color"),
            metalness=args.get("metalness"),
            roughness=args.get("roughness"),
            opacity=args.get("opacity"),
        )
    if name == "createTerrain":
        return CreateTerrain(
            name=_required(args, "name", name),
            width=args.get("width"),
            depth=args.get("depth"),
            height_scale=args.get("heightScale"),
            segments=args.get("segments"),
            seed=args.get("seed"),
            octaves=args.get("octaves"),
            biome=args.get("biome"),
            position=_vec3(args, "position", name),
        )
    if name == "createPlan":
        todos = args.get("todos")
        if todos is not None and not isinstance(todos, list):
            raise ToolArgumentError("createPlan: 'todos' must be a list")
        return CreatePlan(plan=PlanData.from_dict(args), tool_call_id=tool_call_id)
    return UnknownTool(name=name, args=dict(args))
