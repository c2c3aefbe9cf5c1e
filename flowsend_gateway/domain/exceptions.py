"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ConfigurationError(DomainException):
    """Required credentials or keys are absent"""

    pass


class InvalidParametersError(DomainException):
    """User-supplied parameters are malformed or out of range"""

    pass


class MinimumAmountError(InvalidParametersError):
    """Amount is below the accepted minimum"""

    def __init__(self, minimum):
        self.minimum = minimum
        super().__init__(f"Invalid amount. Minimum ${minimum} required.")


class LedgerAPIError(DomainException):
    """Ledger API returned an error or is unavailable"""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class TextGenerationUnavailableError(DomainException):
    """Text generation backend is not configured or unreachable"""

    pass
