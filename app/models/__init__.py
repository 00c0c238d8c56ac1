"""Models package for database models."""

from app.models.artifact import GeneratedArtifact, ReleaseSchedule
from app.models.generation_request import GenerationRequest
from app.models.reading_cache import CachedReading

__all__ = [
    "GeneratedArtifact",
    "ReleaseSchedule",
    "GenerationRequest",
    "CachedReading",
]
