"""
Progress Events - What the ingestion pipeline reports while it runs
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from greyseal.models import utcnow


class IngestionStage(str, Enum):
    LOADING = "loading"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    STORING = "storing"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressEvent:
    """One step of one resource's ingestion

    `current`/`total` are item counts (chunks, embeddings); total == 0 means
    the step has no countable items.
    """
    stage: IngestionStage
    message: str
    current: int = 0
    total: int = 0
    resource_id: Optional[str] = None
    error: Optional[str] = None
    at: datetime = field(default_factory=utcnow)

    @property
    def failed(self) -> bool:
        return self.stage is IngestionStage.ERROR

    @property
    def fraction(self) -> Optional[float]:
        if self.total <= 0:
            return None
        return min(self.current, self.total) / self.total

    def describe(self) -> str:
        text = f"{self.stage.value}: {self.error or self.message}" if self.failed else f"{self.stage.value}: {self.message}"
        if self.total > 0:
            text += f" ({self.current}/{self.total})"
        return text
