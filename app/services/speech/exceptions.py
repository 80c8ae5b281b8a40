"""Speech service exceptions."""


class SpeechError(Exception):
    """Base class for transcription and synthesis errors."""


class NoSpeechDetected(SpeechError):
    """Raised when audio contains no recognizable speech."""


class ProviderError(SpeechError):
    """Raised when the speech provider call fails."""
