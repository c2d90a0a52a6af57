"""Progress update events streamed to the caller during a research run.

``ResearchUpdate`` is a closed, discriminated union keyed on ``type``. Every
variant carries the tool-call id of the run, a human-readable title, an
update id and an emission timestamp; each adds only the payload relevant
to its kind. Variants that describe work in progress (``web``,
``thoughts``, ``writing``) also carry a ``status``: a consumer may receive
the same update ``id`` first as ``running`` and later as ``completed``.
"""

from __future__ import annotations

import time
import uuid
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

UpdateStatus = Literal["running", "completed"]

TERMINAL_UPDATE_TYPES: frozenset[str] = frozenset({"completed", "problem"})


def new_update_id() -> str:
    return uuid.uuid4().hex


def _now_ms() -> int:
    return int(time.time() * 1000)


class WebSearchResult(BaseModel):
    """One search hit as shown to the model and the caller."""

    model_config = ConfigDict(frozen=True)

    source: Literal["web"] = "web"
    title: str = ""
    url: str
    content: str = ""


class _UpdateBase(BaseModel):
    """Fields shared by every update variant."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_update_id)
    tool_call_id: str
    title: str
    timestamp: int = Field(default_factory=_now_ms)
    unit_index: Optional[int] = Field(
        default=None,
        description="Research unit that emitted the update; None for run-level events",
    )


class StartedUpdate(_UpdateBase):
    type: Literal["started"] = "started"


class WebUpdate(_UpdateBase):
    type: Literal["web"] = "web"
    status: UpdateStatus = "running"
    queries: list[str] = Field(default_factory=list)
    results: list[WebSearchResult] = Field(default_factory=list)


class ThoughtsUpdate(_UpdateBase):
    type: Literal["thoughts"] = "thoughts"
    status: UpdateStatus = "completed"
    message: str = ""


class WritingUpdate(_UpdateBase):
    type: Literal["writing"] = "writing"
    status: UpdateStatus = "running"
    message: Optional[str] = None


class CompletedUpdate(_UpdateBase):
    type: Literal["completed"] = "completed"


class ProblemUpdate(_UpdateBase):
    type: Literal["problem"] = "problem"
    error: str


ResearchUpdate = Annotated[
    Union[StartedUpdate, WebUpdate, ThoughtsUpdate, WritingUpdate, CompletedUpdate, ProblemUpdate],
    Field(discriminator="type"),
]

research_update_adapter: TypeAdapter[ResearchUpdate] = TypeAdapter(ResearchUpdate)


def is_terminal(update: ResearchUpdate) -> bool:
    return update.type in TERMINAL_UPDATE_TYPES
