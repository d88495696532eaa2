# exam_prep/core/exceptions.py
"""
Error taxonomy for exam composition, quiz sessions and evaluation.
Every error is recoverable at the call site; the API layer maps
``error_type`` to an HTTP status.
"""


class ExamPrepError(Exception):
    """Base class for all engine errors"""

    error_type = "exam_prep_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ExamPrepError, ValueError):
    """Bad or missing input (unknown subject, empty chapter set, disallowed time limit, bad catalog)"""

    error_type = "validation_error"


class InvalidIndex(ExamPrepError):
    """Answer selection outside the current question's options"""

    error_type = "invalid_index"

    def __init__(self, option_index, option_count: int):
        super().__init__(
            f"Option index {option_index} is out of range for a question with {option_count} options"
        )
        self.option_index = option_index
        self.option_count = option_count


class PreconditionViolation(ExamPrepError):
    """A lifecycle transition was attempted from a state that does not allow it"""

    error_type = "precondition_violation"

    def __init__(self, message: str, precondition: str):
        super().__init__(message)
        self.precondition = precondition


class ExternalGradingFailure(ExamPrepError):
    """Grading capability unreachable, timed out or returned a malformed response"""

    error_type = "external_grading_failure"


class NotFoundError(ExamPrepError, LookupError):
    """Unknown or expired exam / session id"""

    error_type = "not_found"
