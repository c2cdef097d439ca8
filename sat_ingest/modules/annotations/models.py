"""
Annotation-Tile Model

One record per (project_id, image_index). Created empty when the tile is
first registered; stroke and mask content is edited elsewhere.
"""

from enum import Enum
from sqlmodel import SQLModel, Field, Column, JSON
from typing import Dict, Any, List
from datetime import datetime

from sat_ingest.modules.projects.models import utc_now


class Tool(str, Enum):
    PEN = "PEN"
    ERASER = "ERASER"


class Line(SQLModel):
    """A freehand stroke."""
    tool: Tool
    size: float
    annotation_class_id: str
    points: List[float] = Field(default_factory=list)


class AnnotationTile(SQLModel, table=True):
    __tablename__ = "annotations"

    project_id: str = Field(foreign_key="projects.id", primary_key=True)
    image_index: int = Field(primary_key=True, ge=0)

    # One mask blob per annotation class, base64 encoded; "" is an empty mask
    annotations: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    # List of Line dicts
    lines: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def get_lines(self) -> List[Line]:
        return [Line.model_validate(item) for item in self.lines or []]


def empty_masks(class_count: int) -> List[str]:
    """One empty mask placeholder per annotation class."""
    return ["" for _ in range(class_count)]
