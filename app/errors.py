"""
Error kinds raised by the pipeline services.

Each kind carries a stable ``code`` so outer layers can map it to a response
class without string matching on messages.
"""


class PipelineError(Exception):
    code = "pipeline_error"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(PipelineError):
    code = "validation_error"


class NotFoundError(PipelineError):
    code = "not_found"


class InvalidTransitionError(PipelineError):
    code = "invalid_transition"

    def __init__(self, message: str, current: str | None = None, target: str | None = None, **context):
        super().__init__(message, current=current, target=target, **context)
        self.current = current
        self.target = target


class SlotConflictError(PipelineError):
    code = "slot_conflict"


class NoAvailableSlotError(PipelineError):
    code = "no_available_slot"


class JobAlreadyActiveError(PipelineError):
    code = "job_already_active"


class PublishError(PipelineError):
    code = "publish_error"
