"""
Error taxonomy shared by onboarding and the milestone engine.

Each error carries an HTTP status hint for the JSON views and a ``benign``
flag: benign errors are symptoms of a retried action that already took
effect, and callers should present them as "nothing to do".
"""

from __future__ import annotations


class WorkflowError(Exception):
    code = "error"
    http_status = 400
    benign = False

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.code)
        self.context = context

    def as_dict(self) -> dict:
        return {"error": self.code, "detail": str(self)}


class NotFound(WorkflowError):
    code = "not_found"
    http_status = 404


class Expired(WorkflowError):
    code = "expired"
    http_status = 410


class AlreadyConsumed(WorkflowError):
    code = "already_consumed"
    http_status = 409
    benign = True


class OutOfOrder(WorkflowError):
    code = "out_of_order"
    http_status = 409
    benign = True


class InvalidTransition(WorkflowError):
    code = "invalid_transition"
    http_status = 409


class InvariantViolation(WorkflowError):
    code = "invariant_violation"
    http_status = 500

    def __init__(self, message: str = "", application_id=None, **context):
        super().__init__(message, **context)
        self.application_id = application_id


class MissingEmail(WorkflowError):
    code = "missing_email"
    http_status = 400


class MissingSubmission(WorkflowError):
    code = "missing_submission"
    http_status = 409


class NotAllowed(WorkflowError):
    code = "not_allowed"
    http_status = 403


class CodeCollision(WorkflowError):
    code = "code_collision"
    http_status = 409


class ConcurrencyConflict(WorkflowError):
    code = "concurrency_conflict"
    http_status = 503
