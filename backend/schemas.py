"""Pydantic schemas used by the API."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from engine.assembler import (
    FeatureToggles,
    GlobalNodeOptions,
    KnowledgeBaseEntry,
    TransferTarget,
    WebhookIntegration,
)
from engine.nodes import ModelOptions, VariableSpec


class PersonaIn(BaseModel):
    name: str = Field(..., min_length=1)
    voice: str | int
    tone: Optional[str] = None
    speed: Optional[float] = Field(default=None, ge=0.5, le=2.0)
    interruption_threshold: Optional[int] = Field(default=None, ge=0, le=100)


class PathwayCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., max_length=5000, description="What the pathway should do, in plain language.")
    webhooks: list[WebhookIntegration] = Field(default_factory=list)
    knowledge_bases: list[KnowledgeBaseEntry] = Field(default_factory=list)
    transfers: list[TransferTarget] = Field(default_factory=list)
    variables: list[VariableSpec] = Field(default_factory=list)
    features: FeatureToggles = Field(default_factory=FeatureToggles)
    global_nodes: GlobalNodeOptions = Field(default_factory=GlobalNodeOptions)
    data_source_url: Optional[str] = None
    persona: Optional[PersonaIn] = None
    model: Optional[ModelOptions] = None
    publish: bool = Field(default=True, description="Upload to the remote service when it is configured.")


class PathwayBuildResult(BaseModel):
    status: Literal["preview", "created"]
    pathway_id: Optional[str] = None
    pathway: dict[str, Any]
    summary: dict[str, Any]


class PathwaySummary(BaseModel):
    model_config = {"extra": "allow"}

    pathway_id: str
    name: Optional[str] = None
    description: Optional[str] = None


class PathwayList(BaseModel):
    pathways: list[PathwaySummary]
