"""Error taxonomy shared by the assistant and job paths."""

from __future__ import annotations


class Fast3rError(RuntimeError):
    kind = "error"


class ClassificationAmbiguous(Fast3rError):
    """Reserved. The capability classifier is total and never raises this."""

    kind = "classification_ambiguous"


class ProviderUnavailable(Fast3rError):
    kind = "provider_unavailable"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedProviderResponse(Fast3rError):
    kind = "malformed_provider_response"


class GenerationFailed(Fast3rError):
    kind = "generation_failed"


class Timeout(Fast3rError):
    kind = "timeout"


class RecordingUnavailable(Fast3rError):
    kind = "recording_unavailable"
