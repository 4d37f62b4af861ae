"""
Custom exceptions for the outing results pipeline.
"""

class PipelineException(Exception):
    """Base exception for pipeline errors."""
    def __init__(self, message: str, detail: str = None):
        super().__init__(message)
        self.detail = detail or message

class MissingRecordError(PipelineException):
    """Raised when a record referenced by an incoming signal does not exist.

    Fatal for the delivery that referenced it; redelivery will not help.
    """

class OutingNotFoundError(MissingRecordError):
    """Raised when an outing is not found."""
    def __init__(self, outing_id: int):
        super().__init__(f"Outing {outing_id} not found")
        self.outing_id = outing_id

class GroupNotFoundError(MissingRecordError):
    """Raised when a group does not belong to the outing."""
    def __init__(self, outing_id: int, group_key: str):
        super().__init__(f"Group '{group_key}' not found in outing {outing_id}")
        self.outing_id = outing_id
        self.group_key = group_key

class RoundNotFoundError(MissingRecordError):
    """Raised when a round is not found."""
    def __init__(self, round_id: int):
        super().__init__(f"Round {round_id} not found")
        self.round_id = round_id

class SeriesNotFoundError(MissingRecordError):
    """Raised when a multi-round series is not found."""
    def __init__(self, series_id: int):
        super().__init__(f"Series {series_id} not found")
        self.series_id = series_id

class InvalidScoringModeError(PipelineException):
    """Raised when a series uses an unknown scoring mode."""
    def __init__(self, scoring_mode: str):
        super().__init__(
            f"Unknown scoring mode: {scoring_mode}",
            "Scoring mode must be one of cumulative, best_of, points"
        )
        self.scoring_mode = scoring_mode

class RoundLockedError(PipelineException):
    """Raised when scores are written to a round that is no longer live."""
    def __init__(self, round_id: int, status: str):
        super().__init__(f"Round {round_id} is {status} and can no longer be edited")
        self.round_id = round_id

class TransactionError(PipelineException):
    """Raised when a retried transaction keeps failing."""
    def __init__(self, operation: str, attempts: int):
        super().__init__(
            f"Transaction failed for {operation} after {attempts} attempts",
            "Update could not be applied atomically"
        )
        self.operation = operation
        self.attempts = attempts

class OutingValidationError(PipelineException):
    """Raised when outing, round or series setup data is invalid."""
