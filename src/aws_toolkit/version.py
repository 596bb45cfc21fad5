"""Version information for the AWS toolkit."""

__version__ = "1.0.0"


def get_version() -> str:
    """Get the current version string.

    Returns:
        Version string in semantic versioning format.
    """
    return __version__
