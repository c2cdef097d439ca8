"""
Project Model

A project owns a set of annotation classes and an ordered sequence of tiles.
`total_images` is the authoritative number of tiles persisted so far; tile
indices [0, total_images) each have an annotation record.
"""

import uuid
from enum import Enum
from sqlmodel import SQLModel, Field, Column, JSON
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProjectStatus(str, Enum):
    """Project lifecycle states."""
    DRAFT = "DRAFT"                # Editable, nothing ingesting
    UPLOADING = "UPLOADING"        # Tiles are being split and uploaded
    IN_PROGRESS = "IN_PROGRESS"    # Tiles available, annotation/training ongoing
    COMPLETING = "COMPLETING"
    COMPLETED = "COMPLETED"


class TrainingStatus(str, Enum):
    STOP = "STOP"
    INITIALIZING = "INITIALIZING"
    RUNNING = "RUNNING"


class AnnotationClass(SQLModel):
    """One annotation class definition (stored inline on the project)."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    color: str
    hot_key: Optional[str] = None
    description: Optional[str] = None


class Project(SQLModel, table=True):
    __tablename__ = "projects"

    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        primary_key=True
    )

    name: str
    description: str = Field(default="")

    status: str = Field(default=ProjectStatus.DRAFT.value, index=True)
    training_status: str = Field(default=TrainingStatus.STOP.value)

    # Authoritative tile counter, only ever incremented by ingestion
    total_images: int = Field(default=0, ge=0)

    suggest_image_indices: List[int] = Field(default_factory=list, sa_column=Column(JSON))

    # Ordered list of AnnotationClass dicts
    annotation_classes: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))

    # Training metrics
    training_progress: float = Field(default=0.0, ge=0, le=1)
    avg_dice_score: float = Field(default=0.0)
    error_dice_score: float = Field(default=0.0)
    avg_precision: float = Field(default=0.0)
    avg_recall: float = Field(default=0.0)

    created_by: Optional[str] = None

    # Timestamps
    annotation_updated_at: datetime = Field(default_factory=utc_now)
    metric_updated_at: datetime = Field(default_factory=utc_now)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def get_annotation_classes(self) -> List[AnnotationClass]:
        return [AnnotationClass.model_validate(item) for item in self.annotation_classes or []]
