"""Error kinds raised by the fingerprinting pipeline and its collaborators."""


class FingerprinterError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(FingerprinterError):
    """Input rejected before decoding (empty or oversized)."""


class DecodeError(FingerprinterError):
    """Malformed RIFF/WAVE container or non-PCM encoding."""

    def __init__(self, step, message):
        self.step = step
        super().__init__(f"{step}: {message}")


class StageError(FingerprinterError):
    """A processing stage failed; the original exception is kept as __cause__."""

    def __init__(self, stage, cause):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed: {cause}")


class RepositoryError(FingerprinterError):
    """A record was rejected or could not be persisted."""


class StorageError(FingerprinterError):
    """An object could not be stored, fetched or removed."""
