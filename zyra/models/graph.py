# zyra/models/graph.py
from typing import Any, Literal
from pydantic import BaseModel, ConfigDict, Field

NodeType = Literal["note", "chat", "pdf"]

class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0

class GraphNode(BaseModel):
    # The diagram editor attaches its own bookkeeping fields; keep them on round trips.
    model_config = ConfigDict(extra="allow")

    id: str
    type: NodeType
    position: Position = Field(default_factory=Position)
    data: dict[str, Any] = Field(default_factory=dict)

class GraphEdge(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    source: str
    target: str
    type: str | None = None
