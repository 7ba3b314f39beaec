"""Version information."""

VERSION = "v0.7.1-alpha.1"

BUILD_METADATA = "unreleased"


def get_version() -> str:
    """Return the version string in SemVer 2 form."""
    if not BUILD_METADATA:
        return VERSION
    return f"{VERSION}+{BUILD_METADATA}"