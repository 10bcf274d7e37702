class ClinicalAIError(Exception):
    """
    Base class for engine errors. Carries a short machine-readable code
    so the HTTP layer can report failures without leaking internals.
    """

    error_code = "CLINICAL_AI_ERROR"

    def __init__(self, message: str, *, error_code: str | None = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code


class ProviderError(ClinicalAIError):
    error_code = "PROVIDER_ERROR"

    def __init__(self, message: str, *, provider: str, error_code: str | None = None):
        super().__init__(f"[{provider}] {message}", error_code=error_code)
        self.provider = provider


class ProviderUnavailable(ProviderError):
    """Network failure, timeout, missing credentials or non-2xx status."""

    error_code = "PROVIDER_UNAVAILABLE"


class ProviderResponseMalformed(ProviderError):
    """The backend answered but its envelope could not be decoded."""

    error_code = "PROVIDER_RESPONSE_MALFORMED"


class AllProvidersUnavailable(ClinicalAIError):
    error_code = "ALL_PROVIDERS_UNAVAILABLE"

    def __init__(self, errors: list[ProviderError]):
        self.errors = list(errors)
        detail = "; ".join(str(e) for e in self.errors) or "no provider configured"
        super().__init__(f"All AI providers failed: {detail}")
