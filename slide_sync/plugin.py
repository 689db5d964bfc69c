"""
Message handling for the host plugin process.

Each ``generate-slides`` message is validated, then submitted to a
coalescing queue that drives the reconciliation engine, so bursts of edits
collapse into at most one pending run.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .coalescing import CoalescingQueue
from .engine import EngineContext, ReconciliationEngine, SyncReport
from .errors import ValidationError
from .models import SlideDocument
from .validator import MESSAGE_TYPE, validate_payload

logger = logging.getLogger(__name__)


class SlideSyncPlugin:
    """Entry point for transport messages."""

    def __init__(self, context: EngineContext,
                 on_success: Optional[Callable[[SyncReport], Optional[Awaitable[None]]]] = None):
        self.context = context
        self.engine = ReconciliationEngine(context)
        self.queue = CoalescingQueue(self._run, name="slide-sync")
        self.on_success = on_success

    async def _run(self, documents: List[SlideDocument]) -> SyncReport:
        report = await self.engine.run(documents)
        if self.on_success is not None:
            result = self.on_success(report)
            if result is not None:
                await result
        return report

    async def generate(self, documents: List[SlideDocument]) -> SyncReport:
        """Submit already-validated documents; resolves with the covering run's report."""
        return await self.queue.submit(documents)

    async def handle_message(self, message: Any) -> Dict[str, Any]:
        """
        Handle one transport message and return the response message.

        Returns ``{"type": "success", "count": n}`` or
        ``{"type": "error", "message": ...}``. Never raises for bad input or
        render failures.
        """
        msg_type = message.get("type") if isinstance(message, dict) else None
        if msg_type != MESSAGE_TYPE:
            logger.warning(f"Ignoring unsupported message type {msg_type!r}")
            return {"type": "error", "message": f"Unsupported message type: {msg_type!r}"}

        try:
            documents = validate_payload(message, self.context.config)
        except ValidationError as exc:
            logger.error(f"Validation error: {exc}")
            return {"type": "error", "message": str(exc)}

        try:
            report = await self.generate(documents)
        except Exception as exc:
            logger.error(f"Error generating slides: {exc}")
            return {"type": "error", "message": str(exc)}

        return {"type": "success", "count": report.count}
