"""Payroll Workflows.

State machine for payroll generation: choose employees, review a preview,
confirm it.
"""

from hr_kernel.domain.workflow import Guard, Transition, Workflow
from hr_kernel.logging_config import get_logger

logger = get_logger("modules.payroll.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

NO_UNRESOLVED_ERRORS = Guard(
    name="no_unresolved_errors",
    description="Every preview line computed without a data error",
)

logger.info(
    "payroll_workflow_guards_defined",
    extra={"guards": [NO_UNRESOLVED_ERRORS.name]},
)


# -----------------------------------------------------------------------------
# Payroll Generation Workflow
# -----------------------------------------------------------------------------

SELECTING = "selecting"
PREVIEWING = "previewing"
CONFIRMED = "confirmed"

PAYROLL_GENERATION_WORKFLOW = Workflow(
    name="payroll_generation",
    description="Select employees, preview payroll, confirm",
    initial_state=SELECTING,
    states=(SELECTING, PREVIEWING, CONFIRMED),
    transitions=(
        Transition(SELECTING, SELECTING, action="select"),
        Transition(SELECTING, PREVIEWING, action="preview"),
        Transition(PREVIEWING, PREVIEWING, action="edit"),
        Transition(PREVIEWING, PREVIEWING, action="preview"),
        Transition(PREVIEWING, SELECTING, action="select"),
        Transition(PREVIEWING, SELECTING, action="reset"),
        Transition(
            PREVIEWING,
            CONFIRMED,
            action="confirm",
            guard=NO_UNRESOLVED_ERRORS,
            persists=True,
        ),
        Transition(CONFIRMED, SELECTING, action="reset"),
    ),
)

logger.info(
    "payroll_workflow_defined",
    extra={
        "workflow": PAYROLL_GENERATION_WORKFLOW.name,
        "states": list(PAYROLL_GENERATION_WORKFLOW.states),
        "transitions": len(PAYROLL_GENERATION_WORKFLOW.transitions),
    },
)
