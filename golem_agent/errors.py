"""Exception types raised inside a pipeline turn."""


class GolemError(Exception):
    """Base class for golem-agent errors."""


class TransportError(GolemError):
    """The chat transport failed to fetch, download or send."""


class MediaDownloadError(TransportError):
    """A media payload could not be downloaded."""


class GenerationError(GolemError):
    """The generation model call failed or returned an error response."""


class TranscriptionError(GolemError):
    """The transcription provider failed for an audio payload."""
