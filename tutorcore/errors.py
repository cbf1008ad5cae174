"""Error taxonomy for the orchestration core."""


class TutorCoreError(Exception):
    """Base class for all tutorcore errors."""


class ValidationError(TutorCoreError):
    """Input rejected before any network call."""


class ClipTooLarge(ValidationError):
    """Audio clip exceeds the configured size or duration bound."""


class InvalidState(TutorCoreError):
    """Operation not permitted in the current state."""


class DeviceUnavailable(TutorCoreError):
    """Microphone or audio output cannot be acquired."""


class TransientNetworkError(TutorCoreError):
    """Connection-level failure; retried only by explicit user action."""


class ExternalServiceError(TutorCoreError):
    """Transcription, synthesis or response generation failed."""


class ServiceTimeout(ExternalServiceError):
    """An external call exceeded its time bound."""


class PersistenceError(TutorCoreError):
    """A store read or write failed."""
