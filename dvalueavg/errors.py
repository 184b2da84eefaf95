"""
Exception types raised by job functions and the local runtime.
"""


class MalformedRecordError(ValueError):
    """A record field could not be parsed (upstream data corruption)"""

    def __init__(self, message: str, record: str = None):
        self.record = record
        if record is not None:
            message = f"{message}: {record!r}"
        super().__init__(message)


class EmptyGroupInvariantViolation(RuntimeError):
    """An aggregate with no contributing values reached the final reducer"""


class JobFailedError(RuntimeError):
    """A job could not complete because one of its tasks failed"""

    def __init__(self, job_id: str, error_message: str):
        self.job_id = job_id
        self.error_message = error_message
        super().__init__(f"Job {job_id} failed: {error_message}")
