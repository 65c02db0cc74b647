"""
Path Guard

Keeps client-supplied cache filenames inside the cache root. Any name that
is not a single path component, or that resolves outside the root (``..``
segments, absolute paths, symlinks pointing elsewhere), is rejected before
anything touches the filesystem entry.
"""

import logging
import os
from pathlib import Path

from .errors import AccessDenied

logger = logging.getLogger(__name__)


class PathGuard:
    """Resolves cache filenames against a fixed root."""

    def __init__(self, root: Path):
        self.root = Path(root).resolve()

    def resolve(self, filename: str) -> Path:
        """
        Resolve a client-supplied filename to a safe absolute path.

        Args:
            filename: Name requested by the client, e.g. ``<sha256>.jpg``

        Returns:
            Absolute path inside the cache root.

        Raises:
            AccessDenied: if the name is empty, contains NUL, a path
                separator or a ``..`` segment, or resolves outside (or onto)
                the cache root.
        """
        if not filename or "\x00" in filename:
            self._deny(filename, "empty or NUL in name")

        # The cache is flat: a key is a single path component
        if "/" in filename or "\\" in filename or filename != Path(filename).name:
            self._deny(filename, "path separator in name")
        if filename in (".", ".."):
            self._deny(filename, "parent segment in name")

        candidate = self.root / filename
        try:
            resolved = candidate.resolve()
        except (OSError, RuntimeError) as e:
            # RuntimeError: symlink loop on older interpreters
            self._deny(filename, f"unresolvable: {e}")

        if not self.is_contained(resolved):
            self._deny(filename, f"resolves to {resolved}")

        return resolved

    def is_contained(self, path: Path) -> bool:
        """True iff ``path`` is strictly below the cache root."""
        try:
            common = os.path.commonpath([str(self.root), str(path)])
        except ValueError:
            # Different drives on Windows
            return False
        return common == str(self.root) and path != self.root

    def _deny(self, filename: str, reason: str) -> None:
        logger.warning(f"[PathGuard] Access denied for {filename!r}: {reason}")
        raise AccessDenied("Access denied.")
