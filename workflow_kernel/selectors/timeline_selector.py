"""
TimelineSelector -- per-application timeline view.

Reconstructs, for one application, the hops between consecutive history
entries and the completion state of every step in its chain.
"""

from __future__ import annotations

from uuid import UUID

from workflow_kernel.domain.timeline import build_hops, build_step_progress
from workflow_kernel.domain.workflow import ApplicationDetails
from workflow_kernel.exceptions import ApplicationNotFoundError
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.application import Application
from workflow_kernel.models.department import Employee
from workflow_kernel.selectors.base import BaseSelector
from workflow_kernel.selectors.history_selector import HistorySelector
from workflow_kernel.selectors.step_selector import StepChainSelector

logger = get_logger("selectors.timeline")


class TimelineSelector(BaseSelector[Application]):
    """Builds ApplicationDetails."""

    def get_details(self, application_id: UUID) -> ApplicationDetails:
        """
        Timeline of one application.

        Raises:
            ApplicationNotFoundError: no such application.
        """
        app = self.session.get(Application, application_id)
        if app is None:
            raise ApplicationNotFoundError(str(application_id))

        creator = self.session.get(Employee, app.created_by_employee_id)
        history = HistorySelector(self.session).history_of(app.id)
        chain = StepChainSelector(self.session).load(app.workflow_type_id)

        hops = build_hops(app.created_at, creator.department_id, history)
        steps = build_step_progress(chain.steps, history, app.current_step_id)

        logger.debug(
            "timeline_built",
            extra={
                "application_id": str(app.id),
                "hop_count": len(hops),
                "step_count": len(steps),
            },
        )

        return ApplicationDetails(
            application=app.to_dto(),
            workflow_type_name=app.workflow_type.name,
            hops=hops,
            steps=steps,
            required_documents=tuple(d.label for d in app.workflow_type.documents),
        )
