"""Input validation for tool arguments."""

import posixpath
import re
from typing import Final


class PathTraversalError(ValueError):
    """Attempted path traversal detected."""


TRAVERSAL_PATTERNS: Final[list[str]] = [
    r"\.\./",
    r"/\.\.",
    r"^\.\.$",
]


def validate_container_path(path: str) -> str:
    """Validate an absolute path inside a container.

    Args:
        path: Path to validate

    Returns:
        Normalized path

    Raises:
        PathTraversalError: If the path contains ``..`` segments or a null byte
        ValueError: If the path is empty or relative
    """
    if not path:
        raise ValueError("Path cannot be empty")
    if "\x00" in path:
        raise PathTraversalError(f"Path contains null byte: {path!r}")
    for pattern in TRAVERSAL_PATTERNS:
        if re.search(pattern, path):
            raise PathTraversalError(f"Path traversal not allowed: {path}")
    if not path.startswith("/"):
        raise ValueError(f"Container paths must be absolute: {path}")
    return posixpath.normpath(path)
