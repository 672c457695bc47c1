"""Exception hierarchy for the report backend."""

from __future__ import annotations


class ReportServerError(Exception):
    """Base exception for the report backend."""


class JobRejectedError(ReportServerError):
    """A job descriptor was refused before it reached the queue."""


class UnknownJobTypeError(JobRejectedError):
    """No handler is registered for the job's type."""

    def __init__(self, job_type: str, known: list[str]) -> None:
        self.job_type = job_type
        self.known = known
        super().__init__(f"Unknown report type: {job_type}. Valid types: {', '.join(known)}")


class DataQualityError(ReportServerError):
    """Input data fails a dataset-wide structural check."""


class LayoutInvariantError(ReportServerError):
    """Pagination produced pages that do not account for every member."""


class StorageError(ReportServerError):
    """Object storage upload or download failed."""


class RenderError(ReportServerError):
    """A document could not be rendered."""


class WebhookDeliveryError(ReportServerError):
    """The completion callback could not be delivered."""
