"""
Security Helpers - SQL value escaping and path-traversal guard

- sanitize_sql_value: escape values interpolated into LanceDB filter predicates
- validate_path: keep file resources inside allowed base directories
"""

import logging
from pathlib import Path
from typing import List, Optional

from greyseal.errors import SecurityError

logger = logging.getLogger(__name__)


def sanitize_sql_value(value: str) -> str:
    """
    Sanitize string values for LanceDB SQL WHERE clauses.

    Escapes single quotes by doubling them (SQL standard: ' becomes '').

    Args:
        value: User-provided string value

    Returns:
        Sanitized string safe for SQL WHERE clauses
    """
    if not isinstance(value, str):
        raise TypeError(f"Expected string, got {type(value).__name__}")

    return value.replace("'", "''")


def resolve_allowed_base_paths(paths: Optional[List[str]]) -> List[Path]:
    """
    Resolve configured allowed base paths.

    Falls back to the current directory when none are configured.
    """
    resolved = [Path(p).expanduser().resolve() for p in (paths or [])]
    if not resolved:
        logger.warning("No allowed_base_paths configured, using current directory")
        return [Path.cwd().resolve()]
    return resolved


def validate_path(user_path: str, allowed_bases: Optional[List[Path]] = None) -> Path:
    """
    Validate that a path is within allowed base directories.

    Args:
        user_path: User-provided path (may contain ../)
        allowed_bases: Allowed base directories (current directory if None)

    Returns:
        Validated absolute path

    Raises:
        SecurityError: If path is invalid or outside allowed directories

    Examples:
        >>> validate_path("docs/readme.md", [Path("/home/user/project")])
        PosixPath('/home/user/project/docs/readme.md')

        >>> validate_path("../../etc/passwd", [Path("/home/user/project")])
        SecurityError: Path traversal attempt detected
    """
    if not isinstance(user_path, str):
        raise TypeError(f"Expected string path, got {type(user_path).__name__}")

    if allowed_bases is None:
        allowed_bases = resolve_allowed_base_paths(None)

    # Resolve the user-provided path (expands ~, resolves .., follows symlinks)
    try:
        resolved_path = Path(user_path).expanduser().resolve()
    except (ValueError, OSError) as e:
        raise SecurityError(f"Invalid path: {user_path} ({e})") from e

    for base in allowed_bases:
        try:
            resolved_path.relative_to(base)
            return resolved_path
        except ValueError:
            continue

    raise SecurityError(
        f"Path traversal attempt: {user_path} resolves to {resolved_path}, "
        f"which is outside allowed directories: {[str(b) for b in allowed_bases]}"
    )
