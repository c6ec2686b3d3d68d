"""
Typed Exception Hierarchy for the HR Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payroll errors must be handled precisely. A preview row that lacks salary
data is a warning for one employee; a duplicate confirmation is fatal for the
whole batch. Callers must be able to tell these apart without parsing
message strings.

Every exception therefore:
  1. Has its own class (catch by type, not message)
  2. Carries a CODE class attribute (machine-readable, API-safe)
  3. Stores its context as attributes (not just a message string)

Example:
    try:
        service.confirm_payroll(month, year, actor_id, lines)
    except DuplicateConfirmationError as e:
        api_response(code=e.code, employees=e.employee_ids, period=e.month_year)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    HRKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidPeriodError
    |   +-- EmptySelectionError
    |   +-- UnresolvedPreviewLinesError
    |   +-- InvalidPreviewEditError
    |
    +-- DataMissingError
    +-- DuplicateConfirmationError
    +-- PersistenceError
    +-- ImmutabilityViolationError
    +-- WorkflowTransitionError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                      | When Raised                          | Scope
--------------------------|--------------------------------------|--------------
VALIDATION_ERROR          | Malformed request                    | operation
INVALID_PERIOD            | Month/year out of range or malformed | operation
EMPTY_SELECTION           | No employees selected / matched      | operation
UNRESOLVED_PREVIEW_LINES  | Confirm with error-flagged rows      | batch
INVALID_PREVIEW_EDIT      | Edit of a non-adjustable field       | row edit
DATA_MISSING              | Employee lacks salary/policy data    | one row
ALREADY_GENERATED         | (employee, period) already confirmed | batch
PERSISTENCE_ERROR         | Storage failure during confirm       | batch
IMMUTABILITY_VIOLATION    | UPDATE/DELETE of a confirmed record  | operation
INVALID_TRANSITION        | Illegal run-session state change     | operation

===============================================================================
PROPAGATION
===============================================================================

DataMissingError is the only kind the preview collects instead of raising:
the affected employee becomes an error-flagged row and the rest of the batch
continues. Every other kind aborts the current operation. Confirm is
all-or-nothing: a batch-fatal error leaves zero payroll records written.
"""


class HRKernelError(Exception):
    """
    Base exception for all HR kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "HR_KERNEL_ERROR"


# Validation exceptions


class ValidationError(HRKernelError):
    """Request is malformed and cannot be processed."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidPeriodError(ValidationError):
    """Month/year does not describe a valid payroll period."""

    code: str = "INVALID_PERIOD"

    def __init__(self, value: str, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid payroll period '{value}': {reason}", field="month_year")


class EmptySelectionError(ValidationError):
    """Employee selection resolved to zero employees."""

    code: str = "EMPTY_SELECTION"

    def __init__(
        self,
        department_id: str | None = None,
        sub_department_id: str | None = None,
    ):
        self.department_id = department_id
        self.sub_department_id = sub_department_id
        if department_id or sub_department_id:
            message = (
                f"No employees found for department={department_id} "
                f"sub_department={sub_department_id}"
            )
        else:
            message = "No employees selected for payroll"
        super().__init__(message, field="employee_ids")


class UnresolvedPreviewLinesError(ValidationError):
    """Confirm was attempted with error-flagged preview rows."""

    code: str = "UNRESOLVED_PREVIEW_LINES"

    def __init__(self, employee_ids: list[str]):
        self.employee_ids = employee_ids
        super().__init__(
            f"Cannot confirm payroll with {len(employee_ids)} unresolved "
            f"error row(s): {', '.join(employee_ids)}",
            field="lines",
        )


class InvalidPreviewEditError(ValidationError):
    """A preview edit targeted a non-adjustable field or used a bad value."""

    code: str = "INVALID_PREVIEW_EDIT"

    def __init__(self, field_name: str, value: object, reason: str):
        self.field_name = field_name
        self.value = value
        self.reason = reason
        super().__init__(
            f"Cannot set '{field_name}' to {value!r}: {reason}",
            field=field_name,
        )


# Data exceptions


class DataMissingError(HRKernelError):
    """
    Employee lacks the salary or policy data needed to compute a line.

    Degrades a single preview row; never aborts a preview.
    """

    code: str = "DATA_MISSING"

    def __init__(self, employee_id: str, missing: str):
        self.employee_id = employee_id
        self.missing = missing
        super().__init__(f"Employee {employee_id} is missing {missing}")


# Confirmation exceptions


class DuplicateConfirmationError(HRKernelError):
    """Payroll was already generated for (employee, period)."""

    code: str = "ALREADY_GENERATED"

    def __init__(self, employee_ids: list[str], month_year: str):
        self.employee_ids = employee_ids
        self.month_year = month_year
        super().__init__(
            f"Payroll already generated for {month_year}: "
            f"{', '.join(employee_ids) if employee_ids else 'unknown employee'}"
        )


class PersistenceError(HRKernelError):
    """Storage failed while confirming a payroll batch; nothing was written."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, month_year: str, reason: str):
        self.month_year = month_year
        self.reason = reason
        super().__init__(f"Failed to persist payroll for {month_year}: {reason}")


# Immutability exceptions


class ImmutabilityViolationError(HRKernelError):
    """Attempted to modify or delete a confirmed payroll artifact."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")


# Workflow exceptions


class WorkflowTransitionError(HRKernelError):
    """Action is not allowed from the current run-session state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, workflow: str, current_state: str, action: str):
        self.workflow = workflow
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Action '{action}' is not allowed in state '{current_state}' "
            f"of workflow '{workflow}'"
        )
