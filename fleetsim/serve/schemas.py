"""Pydantic models for FastAPI I/O."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..maintenance.profiles import MaintenanceType


class NodeCreate(BaseModel):
    name: str
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class MaintenanceRequest(BaseModel):
    node_id: str
    type: MaintenanceType = MaintenanceType.ROUTINE
    alert_id: Optional[str] = None
    start: Optional[datetime] = None


class TransitionModel(BaseModel):
    pattern: str
    time: str


class TrafficPatternResponse(BaseModel):
    time: str
    period: str
    pattern: Dict[str, Any]
    nextTransition: TransitionModel


class PredictionModel(BaseModel):
    from_: str = Field(alias="from")
    to: str
    time: str
    congestionProbability: float

    model_config = {"populate_by_name": True}


class PerformanceModel(BaseModel):
    uptime: int
    ticks: int
    failedTicks: int
    errorRate: float
    responseTime: float
    tickTime: Dict[str, float]
    lastUpdate: Optional[str] = None


class SnapshotModel(BaseModel):
    tick: int
    timestamp: Optional[str] = None
    nodes: List[Dict[str, Any]]
    alerts: List[Dict[str, Any]]
    tasks: List[Dict[str, Any]]


__all__ = [
    "NodeCreate",
    "MaintenanceRequest",
    "TransitionModel",
    "TrafficPatternResponse",
    "PredictionModel",
    "PerformanceModel",
    "SnapshotModel",
]
