"""Tool schema definitions (Bedrock/Anthropic Messages API) for the scene agent."""

from typing import Any, Dict, List

PRIMITIVES = ["box", "sphere", "cylinder", "cone", "torus", "plane"]

_VEC3 = {
    "type": "array",
    "items": {"type": "number"},
    "minItems": 3,
    "maxItems": 3,
}

CREATE_PLAN_NAME = "createPlan"

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": "addObject",
        "description": "Add a new 3D primitive object to the scene. Returns the created object's ID and name.",
        "input_schema": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Display name for the object (e.g., 'Red Cube')"},
                "primitive": {"type": "string", "enum": PRIMITIVES, "description": "The primitive geometry type"},
                "position": dict(_VEC3, description="World position [x, y, z]. Default is [0, 0, 0]."),
                "color": {"type": "string", "description": "Hex color string (e.g., '#ff0000'). Default is gray."},
                "metalness": {"type": "number", "minimum": 0, "maximum": 1, "description": "Metalness factor 0-1. Default is 0."},
                "roughness": {"type": "number", "minimum": 0, "maximum": 1, "description": "Roughness factor 0-1. Default is 0.5."},
            },
            "required": ["name", "primitive"],
        },
    },
    {
        "name": "removeObject",
        "description": "Remove an object from the scene by its ID.",
        "input_schema": {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "The ID of the object to remove"},
            },
            "required": ["id"],
        },
    },
    {
        "name": "transformObject",
        "description": "Change the position, rotation (degrees), or scale of an existing object by its ID.",
        "input_schema": {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "The ID of the object to transform"},
                "position": dict(_VEC3, description="New world position [x, y, z]"),
                "rotation": dict(_VEC3, description="New rotation in degrees [x, y, z]"),
                "scale": dict(_VEC3, description="New scale [x, y, z]"),
            },
            "required": ["id"],
        },
    },
    {
        "name": "setMaterial",
        "description": "Change material properties (color, metalness/reflectance, roughness, opacity) of an existing object by its ID.",
        "input_schema": {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "The ID of the object to update"},
                "color": {"type": "string", "description": "Hex color string"},
                "metalness": {"type": "number", "minimum": 0, "maximum": 1},
                "roughness": {"type": "number", "minimum": 0, "maximum": 1},
                "opacity": {"type": "number", "minimum": 0, "maximum": 1, "description": "1 = fully opaque"},
            },
            "required": ["id"],
        },
    },
    {
        "name": "createTerrain",
        "description": "Create a procedural terrain patch in the scene. Returns the created terrain's ID and name.",
        "input_schema": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Display name for the terrain"},
                "width": {"type": "number", "description": "Width in world units (default 20)"},
                "depth": {"type": "number", "description": "Depth in world units (default 20)"},
                "heightScale": {"type": "number", "description": "Maximum height (default 3)"},
                "segments": {"type": "integer", "description": "Grid resolution (default 64)"},
                "seed": {"type": "integer", "description": "Noise seed (random when omitted)"},
                "octaves": {"type": "integer", "description": "Noise octaves (default 4)"},
                "biome": {"type": "string", "enum": ["grass", "desert", "snow", "rocky", "volcanic"]},
                "position": dict(_VEC3, description="World position [x, y, z]"),
            },
            "required": ["name"],
        },
    },
    {
        "name": CREATE_PLAN_NAME,
        "description": (
            "Create a structured plan for a complex request. Use with `todos` (and empty `questions`) when the "
            "request is specific enough to produce actionable steps. Use with `questions` (and empty `todos`) when "
            "the request is vague and you need clarification first. After calling this tool, STOP and wait. "
            "Do NOT call addObject or any other scene tools."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "todos": {
                    "type": "array",
                    "description": "The list of to-do items in execution order",
                    "items": {
                        "type": "object",
                        "properties": {
                            "label": {"type": "string", "description": "Short description of the task"},
                            "category": {"type": "string", "description": "Category prefix (e.g. 'World', 'Logic', 'Items')"},
                        },
                        "required": ["label"],
                    },
                },
                "questions": {
                    "type": "array",
                    "description": "Clarifying questions to ask when the request is too vague for concrete todos",
                    "items": {
                        "type": "object",
                        "properties": {
                            "text": {"type": "string", "description": "The clarifying question"},
                            "placeholder": {"type": "string", "description": "Placeholder hint for the free-text input"},
                            "category": {"type": "string", "description": "Category tab label (e.g. 'Scope', 'Style')"},
                            "options": {
                                "type": "array",
                                "items": {
                                    "type": "object",
                                    "properties": {
                                        "label": {"type": "string"},
                                        "description": {"type": "string"},
                                    },
                                    "required": ["label", "description"],
                                },
                            },
                        },
                        "required": ["text"],
                    },
                },
            },
            "required": ["todos"],
        },
    },
]

TOOL_NAMES = frozenset(t["name"] for t in TOOL_DEFINITIONS)

# Tools that change the scene (everything except plan proposals)
SCENE_TOOLS = TOOL_NAMES - {CREATE_PLAN_NAME}
