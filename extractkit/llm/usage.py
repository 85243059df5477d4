"""AI usage records handed to the billing collaborator."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging

from extractkit.enums import UsageAction
from extractkit.llm.providers import Generation

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class UsageRecord:
    action: UsageAction
    input_tokens: int
    output_tokens: int
    model: str


UsageSink = Callable[[UsageRecord], None]


def log_usage_sink(record: UsageRecord) -> None:
    """Default sink: emit the record as a log line."""

    logger.info(
        "ai usage",
        extra={
            "action": record.action.value,
            "input_tokens": record.input_tokens,
            "output_tokens": record.output_tokens,
            "model": record.model,
        },
    )


def record_usage(
    generation: Generation,
    *,
    action: UsageAction = UsageAction.SUMMARIZE,
    sink: UsageSink | None = None,
) -> None:
    """Deliver one usage record; sink failures are logged, never raised."""

    record = UsageRecord(
        action=action,
        input_tokens=max(0, generation.input_token_count),
        output_tokens=max(0, generation.output_token_count),
        model=generation.model,
    )
    try:
        (sink or log_usage_sink)(record)
    except Exception:
        logger.warning("failed to log ai usage for %s", record.model, exc_info=True)
