"""
Pipeline outcomes and the sinks that receive them.

The message handler never logs business results directly; it emits one
PipelineOutcome per message to each registered observer. Logging and
counters are two such observers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from ..core import metrics
from ..core.errors import IngesterError

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    """Pipeline stages, in order."""

    RECEIVED = "received"
    PARSED = "parsed"
    COLLECTION_RESOLVED = "collection_resolved"
    BODY_ENRICHED = "body_enriched"
    HASH_COMPUTED = "hash_computed"
    WRITTEN = "written"
    FORWARDED = "forwarded"


@dataclass(frozen=True)
class PipelineOutcome:
    """
    Result of running one message through the pipeline.

    ``stage`` is the last stage completed when ``ok`` is True, or the stage
    that failed when ``ok`` is False.
    """

    stage: Stage
    ok: bool
    transaction_id: str = ""
    origin_system_id: str = ""
    collection: str | None = None
    content_uuid: str | None = None
    native_hash: str | None = None
    error: BaseException | None = None

    @property
    def error_code(self) -> str | None:
        if self.error is None:
            return None
        if isinstance(self.error, IngesterError):
            return self.error.code
        return "NI-INTERNAL-900"

    @property
    def log_context(self) -> dict[str, Any]:
        context: dict[str, Any] = {
            "transaction_id": self.transaction_id,
            "origin_system_id": self.origin_system_id,
            "stage": self.stage.value,
        }
        if self.collection:
            context["collection"] = self.collection
        if self.content_uuid:
            context["uuid"] = self.content_uuid
        if isinstance(self.error, IngesterError):
            context.update(self.error.to_log_dict())
        elif self.error is not None:
            context["error_code"] = self.error_code
            context["error_msg"] = str(self.error)
        return context


class PipelineObserver(Protocol):
    def on_outcome(self, outcome: PipelineOutcome) -> None: ...


class LoggingObserver:
    """Logs every outcome; failures at ERROR with the error code attached."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def on_outcome(self, outcome: PipelineOutcome) -> None:
        if outcome.ok:
            self._log.info("Native publish event processed", extra=outcome.log_context)
            return
        self._log.error(
            "Failed at stage %s. Ignoring message.",
            outcome.stage.value,
            extra=outcome.log_context,
        )


class MetricsObserver:
    """Feeds outcomes into the in-process counters."""

    def on_outcome(self, outcome: PipelineOutcome) -> None:
        metrics.increment_received()
        if not outcome.ok:
            metrics.increment_failed(outcome.stage.value)
            if outcome.stage is Stage.FORWARDED:
                metrics.increment_written()
            return
        metrics.increment_written()
        if outcome.stage is Stage.FORWARDED:
            metrics.increment_forwarded()
