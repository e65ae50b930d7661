"""
In-memory scene graph the agent tools operate on.

The editor owns rendering and persistence of the scene; this module models
only what the orchestration layer reads and mutates: game objects keyed by id,
the workspace root, selection, the console log and the transient "AI is
working on this" highlights.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

AI_SOURCE = "AI Agent"

OBJECT_TYPES = frozenset({"empty", "mesh", "light", "camera", "audio", "sprite", "tilemap", "particle"})
TERRAIN_BIOMES = frozenset({"grass", "desert", "snow", "rocky", "volcanic"})


class SceneError(Exception):
    """Scene mutation could not be applied"""
    pass


class NoWorkspaceError(SceneError):
    """The scene has no root workspace to parent new objects under"""
    pass


@dataclass
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def from_list(cls, values) -> "Vector3":
        x, y, z = values
        return cls(float(x), float(y), float(z))

    def to_list(self) -> List[float]:
        return [self.x, self.y, self.z]


@dataclass
class Transform:
    position: Vector3 = field(default_factory=Vector3)
    rotation: Vector3 = field(default_factory=Vector3)
    scale: Vector3 = field(default_factory=lambda: Vector3(1.0, 1.0, 1.0))

    def copy(self) -> "Transform":
        return Transform(
            position=Vector3(*self.position.to_list()),
            rotation=Vector3(*self.rotation.to_list()),
            scale=Vector3(*self.scale.to_list()),
        )


@dataclass
class TerrainData:
    width: float = 20
    depth: float = 20
    height_scale: float = 3
    segments: int = 64
    seed: int = 0
    octaves: int = 4
    biome: str = "grass"


@dataclass
class GameObject:
    id: str
    name: str
    type: str = "empty"
    transform: Transform = field(default_factory=Transform)
    visible: bool = True
    locked: bool = False
    children: List[str] = field(default_factory=list)
    parent_id: Optional[str] = None
    primitive_type: Optional[str] = None
    terrain_data: Optional[TerrainData] = None
    color: Optional[str] = None
    material: Optional[str] = None
    reflectance: Optional[float] = None
    roughness: Optional[float] = None
    transparency: Optional[float] = None


_UPDATABLE_FIELDS = frozenset(f.name for f in fields(GameObject)) - {"id", "children", "parent_id"}


@dataclass
class CameraInfo:
    position: Vector3
    target: Vector3
    fov: float = 50.0


@dataclass
class LogEntry:
    message: str
    level: str = "info"
    source: str = ""
    timestamp: float = field(default_factory=time.time)


class Scene:
    """
    Scene collaborator used by the tool handlers.

    Highlights for objects the agent just touched clear themselves after
    `highlight_ms` through the timer registry, keyed by object id.
    """

    def __init__(
        self,
        timers=None,
        highlight_ms: int = 2000,
        workspace_name: Optional[str] = "Workspace",
        max_logs: int = 500,
    ):
        self.timers = timers
        self.highlight_ms = highlight_ms
        self.max_logs = max_logs
        self.game_objects: Dict[str, GameObject] = {}
        self.root_object_ids: List[str] = []
        self.selected_object_ids: List[str] = []
        self.ai_working_object_ids: List[str] = []
        self.focus_requested = False
        self.creation_effect_position: Optional[Vector3] = None
        self.camera: Optional[CameraInfo] = None
        self.logs: List[LogEntry] = []
        if workspace_name:
            self.create_game_object("empty", workspace_name, None)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def workspace_id(self) -> Optional[str]:
        return self.root_object_ids[0] if self.root_object_ids else None

    def get(self, object_id: str) -> Optional[GameObject]:
        return self.game_objects.get(object_id)

    def visible_objects(self) -> List[GameObject]:
        return [o for o in self.game_objects.values() if o.visible]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_game_object(self, object_type: str, name: str, parent_id: Optional[str]) -> str:
        if object_type not in OBJECT_TYPES:
            raise SceneError(f"Unknown object type: {object_type}")
        if parent_id is not None and parent_id not in self.game_objects:
            raise SceneError(f"Parent not found: {parent_id}")
        object_id = f"obj-{uuid.uuid4().hex[:10]}"
        self.game_objects[object_id] = GameObject(id=object_id, name=name, type=object_type, parent_id=parent_id)
        if parent_id is None:
            self.root_object_ids.append(object_id)
        else:
            self.game_objects[parent_id].children.append(object_id)
        return object_id

    def create_and_configure_object(
        self,
        object_type: str,
        name: str,
        parent_id: Optional[str],
        updates: Optional[Dict[str, Any]] = None,
        effect_position: Optional[Vector3] = None,
    ) -> str:
        """Create, configure and select an object as one mutation."""
        object_id = self.create_game_object(object_type, name, parent_id)
        if updates:
            self.update_game_object(object_id, updates)
        self.select_object(object_id)
        self.creation_effect_position = effect_position
        return object_id

    def update_game_object(self, object_id: str, updates: Dict[str, Any]) -> None:
        obj = self.game_objects.get(object_id)
        if obj is None:
            raise SceneError(f"Object not found: {object_id}")
        for key, value in updates.items():
            if key not in _UPDATABLE_FIELDS:
                raise SceneError(f"Field is not updatable: {key}")
            setattr(obj, key, value)

    def delete_game_object(self, object_id: str) -> None:
        """Delete an object and its whole subtree."""
        obj = self.game_objects.get(object_id)
        if obj is None:
            raise SceneError(f"Object not found: {object_id}")
        for child_id in list(obj.children):
            self.delete_game_object(child_id)
        if obj.parent_id and obj.parent_id in self.game_objects:
            parent = self.game_objects[obj.parent_id]
            parent.children = [c for c in parent.children if c != object_id]
        self.root_object_ids = [r for r in self.root_object_ids if r != object_id]
        self.selected_object_ids = [s for s in self.selected_object_ids if s != object_id]
        self.remove_ai_working_object(object_id)
        del self.game_objects[object_id]

    def select_object(self, object_id: Optional[str]) -> None:
        if object_id is None:
            self.selected_object_ids = []
        elif object_id in self.game_objects:
            self.selected_object_ids = [object_id]

    def request_focus(self) -> None:
        self.focus_requested = True

    def log(self, message: str, level: str = "info", source: str = AI_SOURCE) -> None:
        self.logs.append(LogEntry(message=message, level=level, source=source))
        # Console keeps the newest entries only
        if len(self.logs) > self.max_logs:
            del self.logs[:len(self.logs) - self.max_logs]
        if level == "error":
            logger.error(f"[{source}] {message}")
        elif level == "warning":
            logger.warning(f"[{source}] {message}")
        else:
            logger.info(f"[{source}] {message}")

    # ------------------------------------------------------------------
    # Transient highlights
    # ------------------------------------------------------------------

    def add_ai_working_object(self, object_id: str) -> None:
        if object_id not in self.ai_working_object_ids:
            self.ai_working_object_ids.append(object_id)
        if self.timers is not None:
            self.timers.schedule(
                f"highlight:{object_id}",
                self.highlight_ms / 1000.0,
                lambda: self._clear_highlight(object_id),
            )

    def remove_ai_working_object(self, object_id: str) -> None:
        if self.timers is not None:
            self.timers.cancel(f"highlight:{object_id}")
        self._clear_highlight(object_id)

    def _clear_highlight(self, object_id: str) -> None:
        self.ai_working_object_ids = [i for i in self.ai_working_object_ids if i != object_id]
