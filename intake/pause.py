"""
Pause/resume support shared by every case workflow.

The flag is local to one workflow instance. Pausing a parent does not pause
its children; operators pause a whole case by signalling each instance in
the registrar tree (see ``TemporalCaseWorkflowClient.pause_tree``).
"""

import logging

from temporalio import workflow

logger = logging.getLogger(__name__)


class PausableWorkflowMixin:
    """
    Adds ``pause``/``resume`` signals and an ``is_paused`` query.

    Workflows await ``check_paused()`` before each externally visible step.
    A call already in flight is not cancelled; only the next step waits.
    """

    def __init__(self) -> None:
        self._paused = False

    @workflow.signal(name="pause")
    def pause(self) -> None:
        if not self._paused:
            logger.info("Pause requested")
        self._paused = True

    @workflow.signal(name="resume")
    def resume(self) -> None:
        if self._paused:
            logger.info("Resume requested")
        self._paused = False

    @workflow.query(name="is_paused")
    def is_paused(self) -> bool:
        return self._paused

    async def check_paused(self) -> None:
        if self._paused:
            logger.info("Workflow paused, waiting for resume")
            await workflow.wait_condition(lambda: not self._paused)
            logger.info("Workflow resumed")
