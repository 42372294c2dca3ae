class InvalidInputError(ValueError):
    """Playlist references or weights are missing or malformed."""


class PlaylistResolutionError(Exception):
    """A playlist reference could not be resolved to its artists."""


class ConfigurationError(RuntimeError):
    """Required API credentials are not configured."""
