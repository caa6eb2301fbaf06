"""Exceptions raised by the triage core.

Input anomalies in symptom data never raise (they are clamped or ignored
by the models).  Malformed model output never raises either; it degrades
to default values.  What remains is listed here.
"""


class CaseNotFoundError(ValueError):
    """The case store has no record for the requested case identifier."""

    def __init__(self, case_id: str) -> None:
        super().__init__(f"Case not found: case_id={case_id}")
        self.case_id = case_id


class ConditionalUpdateError(RuntimeError):
    """A guarded write was rejected because the case changed underneath it.

    Raised by ``CaseStore.update`` when one of the ``condition`` fields no
    longer holds its expected value.  Callers re-read the case and decide
    whether the work has already been done by someone else.
    """

    def __init__(self, case_id: str, condition: dict) -> None:
        super().__init__(
            f"Conditional update failed: case_id={case_id}, "
            f"condition={sorted(condition)}"
        )
        self.case_id = case_id
        self.condition = condition


class SecondaryAssessmentError(RuntimeError):
    """The secondary assessor returned no usable response envelope.

    Covers a missing/empty body, a body that is not JSON, a missing
    ``content`` field and transport failures.  Malformed JSON *inside*
    the content is not an error.
    """


class NotificationError(RuntimeError):
    """The notification sink refused or failed to deliver a message."""
