"""Application name and version from installed package metadata."""

from dataclasses import dataclass
from importlib import metadata

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class Manifest:
    """Implementation title and version of the running application."""

    name: str | None = None
    version: str | None = None


def read_manifest(distribution: str | None) -> Manifest:
    """
    Read name and version of an installed distribution.

    Missing or unreadable metadata yields an empty manifest.

    Args:
        distribution: Distribution name as published on the package index

    Returns:
        Manifest with whatever fields could be read
    """
    if not distribution:
        return Manifest()

    try:
        meta = metadata.metadata(distribution)
    except metadata.PackageNotFoundError:
        logger.debug("Distribution not installed", distribution=distribution)
        return Manifest()

    return Manifest(name=meta.get("Name"), version=meta.get("Version"))
