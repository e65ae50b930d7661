"""
Agent event data type.
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional


@dataclass
class AgentEvent:
    """Event emitted by a streaming session"""
    type: str  # status, update, finish, error
    content: str = ""
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "content": self.content, "data": self.data}
