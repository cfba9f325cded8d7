"""Version information for repo-sync."""

__version__ = "0.3.0"
__version_info__ = tuple(int(i) for i in __version__.split("."))

# Transports the sync core knows how to reach
TRANSPORTS = ["https", "ssh", "local"]


def get_version() -> str:
    """Get the current version string."""
    return __version__


def get_version_info() -> tuple:
    """Get the version as a tuple of integers."""
    return __version_info__
