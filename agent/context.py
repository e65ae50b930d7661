"""
Scene, selection and camera context serialization.

These strings are what the model sees of the editor state on every turn;
hidden objects are left out so the agent never references them.
"""

from typing import Dict, List, Optional

from scene import CameraInfo, GameObject, Scene
from agent.prompts import EMPTY_SCENE


def _num(value: float):
    """Render 2.0 as 2 so positions read like the editor shows them."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _vec(v) -> str:
    return f"[{_num(v.x)}, {_num(v.y)}, {_num(v.z)}]"


def _describe(obj: GameObject, full: bool) -> str:
    lines = [f'- "{obj.name}" (id: {obj.id}, type: {obj.type})']
    lines.append(f"  position: {_vec(obj.transform.position)}")
    lines.append(f"  scale: {_vec(obj.transform.scale)}")
    if obj.color:
        lines.append(f"  color: {obj.color}")
    if full and obj.transparency is not None:
        lines.append(f"  transparency: {_num(obj.transparency)}")
    if full and obj.reflectance is not None:
        lines.append(f"  reflectance: {_num(obj.reflectance)}")
    if obj.primitive_type:
        lines.append(f"  primitive: {obj.primitive_type}")
    if full and obj.terrain_data is not None:
        td = obj.terrain_data
        lines.append(
            f"  terrain: {_num(td.width)}x{_num(td.depth)}, height {_num(td.height_scale)}, "
            f"biome {td.biome}, seed {td.seed}"
        )
    return "\n".join(lines)


def serialize_scene_context(game_objects: Dict[str, GameObject]) -> str:
    visible = [o for o in game_objects.values() if o.visible]
    if not visible:
        return EMPTY_SCENE
    descriptions = "\n".join(_describe(o, full=True) for o in visible)
    return f"Current scene objects ({len(visible)}):\n{descriptions}"


def serialize_selection_context(
    game_objects: Dict[str, GameObject],
    selected_ids: List[str],
) -> Optional[str]:
    """Selected objects, or None when nothing (still existing) is selected."""
    descriptions = [_describe(game_objects[i], full=False) for i in selected_ids if i in game_objects]
    if not descriptions:
        return None
    return f"{len(descriptions)} object(s) selected:\n" + "\n".join(descriptions)


def serialize_camera_context(camera: Optional[CameraInfo]) -> Optional[str]:
    if camera is None:
        return None
    return "\n".join([
        f"Camera position: {_vec(camera.position)}",
        f"Camera target: {_vec(camera.target)}",
        f"Field of view: {_num(camera.fov)}°",
        "The camera is looking from this position toward the target. Use this to understand "
        "the user's viewpoint when interpreting spatial instructions.",
    ])


def build_request_context(scene: Scene) -> Dict[str, Optional[str]]:
    """Context fields sent alongside every chat request."""
    return {
        "scene_context": serialize_scene_context(scene.game_objects),
        "selection_context": serialize_selection_context(scene.game_objects, scene.selected_object_ids),
        "camera_context": serialize_camera_context(scene.camera),
    }
