from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, ConfigDict


class BaseEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    subject_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    process_name: Optional[str] = None

    @property
    def name(self) -> str:
        return self.__class__.__name__


class IterationReportEvent(BaseEvent):
    iteration: int
    norm_x: float
    norm_b: float
    delta_x: Optional[List[float]] = None
    delta_r: Optional[List[float]] = None


class ConvergenceReachedEvent(BaseEvent):
    iteration: int
    norm_x: float
    norm_b: float


class ConvergenceWarningEvent(BaseEvent):
    reason: str
    message: str
    iteration: int = 0
    norm_x: Optional[float] = None
    norm_b: Optional[float] = None


class CheckpointErrorEvent(BaseEvent):
    operation: str
    db_tag: int
    c_tag: int
    result: int
    message: str


Reporter = Callable[[BaseEvent], None]


def emit_event(event: BaseEvent, *, sink_path: Optional[Path] = None, echo: bool = True) -> None:
    """Emit event to JSONL sink (logs/events.jsonl) and stdout.

    Ensures directory exists; appends a single JSON object per line.
    """
    assert event is not None, "event required"
    sink = sink_path or Path("logs") / "events.jsonl"
    sink.parent.mkdir(parents=True, exist_ok=True)

    payload = {
        "name": event.name,
        **json.loads(event.model_dump_json()),
    }
    line = json.dumps(payload)
    with open(sink, "a", encoding="utf-8") as f:
        f.write(line + "\n")

    if echo:
        print(line)


class EventReporter:
    """Reporter bound to a sink path; pass instances wherever a `reporter` is accepted."""

    def __init__(self, sink_path: Optional[Path] = None, *, echo: bool = True) -> None:
        self.sink_path = Path(sink_path) if sink_path is not None else None
        self.echo = bool(echo)

    def __call__(self, event: BaseEvent) -> None:
        emit_event(event, sink_path=self.sink_path, echo=self.echo)
