"""Response generation exceptions."""


class GenerationProviderError(Exception):
    """Raised when the generation provider fails or returns nothing usable."""
