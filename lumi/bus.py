"""Event bus: handler registration and envelope dispatch."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List

from pydantic import BaseModel

from .contracts import EventEnvelope, schema_for
from .transports import BaseTransport
from .workflow import Workflow

logger = logging.getLogger(__name__)


class EventBus:
    """Registers workflows per event name and publishes envelopes to them.

    ``emit`` records one delivery per registered handler on the handler's
    own topic and returns; execution happens later in a
    :class:`~lumi.execute.WorkflowExecutor`.
    """

    def __init__(self, transport: BaseTransport) -> None:
        self.transport = transport
        self._handlers: Dict[str, List[Workflow]] = defaultdict(list)
        self._workflows: Dict[str, Workflow] = {}

    def register(self, workflow: Workflow) -> Workflow:
        """Register ``workflow`` for its event name."""
        schema_for(workflow.event)
        if workflow.id in self._workflows:
            raise ValueError(f"Workflow {workflow.id} is already registered")
        self._workflows[workflow.id] = workflow
        self._handlers[workflow.event].append(workflow)
        logger.debug(f"Registered workflow {workflow.id} for {workflow.event}")
        return workflow

    def register_all(self, workflows: Iterable[Workflow]) -> None:
        for wf in workflows:
            self.register(wf)

    def handlers_for(self, event_name: str) -> List[Workflow]:
        return list(self._handlers.get(event_name, []))

    def get_workflow(self, workflow_id: str) -> Workflow:
        return self._workflows[workflow_id]

    @property
    def workflows(self) -> List[Workflow]:
        return list(self._workflows.values())

    async def emit(self, *envelopes: EventEnvelope) -> List[str]:
        """Publish each envelope to every handler registered for its name.

        Returns:
            Envelope ids in emission order.
        """
        for envelope in envelopes:
            handlers = self._handlers.get(envelope.name)
            if not handlers:
                logger.warning(
                    f"No handlers registered for {envelope.name}; envelope {envelope.id} dropped"
                )
                continue
            for wf in handlers:
                await self.transport.publish(wf.id, envelope)
            logger.info(
                f"Emitted {envelope.name} ({envelope.id}) to {len(handlers)} handler(s)"
            )
        return [envelope.id for envelope in envelopes]

    async def send(self, name: str, data: BaseModel | Dict[str, Any]) -> EventEnvelope:
        """Build an envelope for ``name`` and emit it."""
        envelope = EventEnvelope.create(name, data)
        await self.emit(envelope)
        return envelope
