"""Resilience Engine — dependency cascade analysis and capacity placement."""

from resilience_engine.config import ResilienceEngineConfig
from resilience_engine.core.graph_model import GraphModel
from resilience_engine.engine import ResilienceEngine
from resilience_engine.schema import (
    EngineReport,
    PlacementRequest,
)

__all__ = [
    "EngineReport",
    "GraphModel",
    "PlacementRequest",
    "ResilienceEngine",
    "ResilienceEngineConfig",
]
