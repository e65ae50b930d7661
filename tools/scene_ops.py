"""Scene-mutation tool handlers: one atomic mutation plus selection/focus side effects each."""

import logging
import random
import time

from scene import NoWorkspaceError, TerrainData, Transform, Vector3
from tools._common import ToolContext, ToolResult
from tools.calls import AddObject, CreatePlan, CreateTerrain, RemoveObject, SetMaterial, TransformObject

logger = logging.getLogger(__name__)


def add_object(call: AddObject, ctx: ToolContext) -> ToolResult:
    scene = ctx.scene
    workspace_id = scene.workspace_id
    if not workspace_id:
        raise NoWorkspaceError("No workspace found; cannot add object to scene")

    updates = {"primitive_type": call.primitive}
    position = Vector3.from_list(call.position) if call.position else Vector3()
    if call.position:
        updates["transform"] = Transform(position=position)
    if call.color:
        updates["color"] = call.color
    if call.metalness is not None:
        updates["reflectance"] = call.metalness
    if call.roughness is not None:
        updates["roughness"] = call.roughness

    object_id = scene.create_and_configure_object("mesh", call.name, workspace_id, updates, position)
    scene.request_focus()
    scene.add_ai_working_object(object_id)
    scene.log(f'AI: Created "{call.name}" ({call.primitive})')
    return {"id": object_id, "name": call.name}


def remove_object(call: RemoveObject, ctx: ToolContext) -> ToolResult:
    scene = ctx.scene
    obj = scene.get(call.id)
    if obj is None:
        scene.log(f"AI: Object not found (id: {call.id})", "warning")
        return {"removed": False, "id": call.id}

    scene.delete_game_object(call.id)
    scene.log(f'AI: Removed "{obj.name}"')
    return {"removed": True, "id": call.id}


def transform_object(call: TransformObject, ctx: ToolContext) -> ToolResult:
    scene = ctx.scene
    obj = scene.get(call.id)
    if obj is None:
        scene.log(f"AI: Object not found (id: {call.id})", "warning")
        return {"updated": False, "id": call.id}

    transform = obj.transform.copy()
    changes = []
    if call.position:
        transform.position = Vector3.from_list(call.position)
        changes.append("position")
    if call.rotation:
        transform.rotation = Vector3.from_list(call.rotation)
        changes.append("rotation")
    if call.scale:
        transform.scale = Vector3.from_list(call.scale)
        changes.append("scale")

    scene.update_game_object(call.id, {"transform": transform})
    scene.select_object(call.id)
    scene.add_ai_working_object(call.id)
    scene.log(f'AI: Transformed "{obj.name}" ({", ".join(changes)})')
    return {"updated": True, "id": call.id}


def set_material(call: SetMaterial, ctx: ToolContext) -> ToolResult:
    scene = ctx.scene
    obj = scene.get(call.id)
    if obj is None:
        scene.log(f"AI: Object not found (id: {call.id})", "warning")
        return {"updated": False, "id": call.id}

    updates = {}
    changes = []
    if call.color is not None:
        updates["color"] = call.color
        changes.append(f"color={call.color}")
    if call.metalness is not None:
        updates["reflectance"] = call.metalness
        changes.append(f"reflectance={call.metalness}")
    if call.roughness is not None:
        updates["roughness"] = call.roughness
        changes.append(f"roughness={call.roughness}")
    if call.opacity is not None:
        # opacity 1 = transparency 0
        updates["transparency"] = 1 - call.opacity
        changes.append(f"opacity={call.opacity}")

    scene.update_game_object(call.id, updates)
    scene.select_object(call.id)
    scene.add_ai_working_object(call.id)
    scene.log(f'AI: Updated material on "{obj.name}" ({", ".join(changes)})')
    return {"updated": True, "id": call.id}


def create_terrain(call: CreateTerrain, ctx: ToolContext) -> ToolResult:
    scene = ctx.scene
    workspace_id = scene.workspace_id
    if not workspace_id:
        raise NoWorkspaceError("No workspace found; cannot add terrain to scene")

    terrain = TerrainData(
        width=call.width if call.width is not None else 20,
        depth=call.depth if call.depth is not None else 20,
        height_scale=call.height_scale if call.height_scale is not None else 3,
        segments=call.segments if call.segments is not None else 64,
        seed=call.seed if call.seed is not None else random.randint(0, 99999),
        octaves=call.octaves if call.octaves is not None else 4,
        biome=call.biome or "grass",
    )
    position = Vector3.from_list(call.position) if call.position else Vector3()
    updates = {
        "primitive_type": "terrain",
        "terrain_data": terrain,
        "transform": Transform(position=position),
    }

    object_id = scene.create_and_configure_object("mesh", call.name, workspace_id, updates, position)
    scene.request_focus()
    scene.add_ai_working_object(object_id)
    scene.log(f'AI: Created terrain "{call.name}" ({terrain.biome}, {terrain.width}x{terrain.depth})')
    return {"id": object_id, "name": call.name}


def create_plan(call: CreatePlan, ctx: ToolContext) -> ToolResult:
    plan_id = call.tool_call_id or f"plan-{int(time.time() * 1000)}"
    ctx.plans.set_plan(plan_id, call.plan)
    if call.plan.questions:
        return {"status": "questions_asked", "questionCount": len(call.plan.questions)}
    return {"status": "plan_created", "todoCount": len(call.plan.todos)}
