class RiskOracleError(Exception):
    """Base exception for risk oracle errors."""


class BackendError(RiskOracleError):
    """A single AI backend could not produce an assessment."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class BackendNotConfigured(BackendError):
    def __init__(self, source: str) -> None:
        super().__init__(source, "missing api key")


class BackendHTTPError(BackendError):
    def __init__(self, source: str, status_code: int) -> None:
        super().__init__(source, f"http status {status_code}")
        self.status_code = status_code


class InvalidBackendResponse(BackendError):
    pass


class AssessmentSuperseded(RiskOracleError):
    """An in-flight assessment was cancelled by a newer request for the same market."""

    def __init__(self, market_id: str) -> None:
        super().__init__(f"assessment superseded market_id={market_id}")
        self.market_id = market_id
