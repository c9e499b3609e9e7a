"""Canonical Planning Error Types.

Standard error codes:
- TEMPLATE_INVALID: One or more templates in a batch failed validation
- NO_TEMPLATES: The mixing allocator was invoked without templates
- PROGRAM_EXISTS: Generation would overwrite an active program without confirmation
- NO_ACTIVE_PROGRAM: Adaptation or reschedule requested without an active program
- TEMPLATE_MISSING: The template backing the active program could not be found

Slot resolution never raises; unmet constraints degrade to skip reasons.
"""


class PlanningError(RuntimeError):
    """Base class for engine errors.

    Attributes:
        code: Error code (e.g., "TEMPLATE_INVALID", "NO_ACTIVE_PROGRAM")
        details: List of error detail strings
    """

    def __init__(self, code: str, details: list[str]):
        self.code = code
        self.details = details
        super().__init__(f"{code}: {details}")


class TemplateValidationError(PlanningError):
    """Raised when any template in a batch fails normalization.

    The details list enumerates every invalid field of every template,
    never only the first failure.
    """

    def __init__(self, details: list[str]):
        super().__init__("TEMPLATE_INVALID", details)


class MixingInputError(PlanningError):
    """Raised when the mixing allocator receives no templates."""

    def __init__(self, detail: str = "No templates provided to mixing engine."):
        super().__init__("NO_TEMPLATES", [detail])


class ProgramConflictError(PlanningError):
    """Raised when an existing program would be overwritten without confirmation."""

    def __init__(self, plan_id: str | None = None):
        detail = "Existing program present. Confirm overwrite to proceed."
        if plan_id:
            detail = f"{detail} (plan_id={plan_id})"
        super().__init__("PROGRAM_EXISTS", [detail])


class AdaptationError(PlanningError):
    """Raised when adaptation cannot run at all.

    There is no meaningful partial adaptation, so these are fatal to the call.
    """

    @classmethod
    def no_active_program(cls) -> "AdaptationError":
        return cls("NO_ACTIVE_PROGRAM", ["No active program to adapt."])

    @classmethod
    def template_missing(cls, template_id: int | None) -> "AdaptationError":
        return cls("TEMPLATE_MISSING", [f"Active program template missing (template_id={template_id})."])
