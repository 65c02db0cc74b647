"""Cache key derivation for transformed renditions."""

import hashlib

from .config import OUTPUT_EXTENSION
from .models import TransformSpec

AUTO_MARKER = "auto"


def canonical_transform_string(identity: str, spec: TransformSpec) -> str:
    """Canonical text form of (identity, spec) fed to the hash."""
    width = spec.width if spec.width is not None else AUTO_MARKER
    height = spec.height if spec.height is not None else AUTO_MARKER
    return f"{identity}_{width}x{height}_q{spec.quality}"


def derive_cache_key(identity: str, spec: TransformSpec) -> str:
    """
    Derive the cache filename for a rendition.

    Returns:
        sha256 hex digest of the canonical string plus the output extension,
        e.g. ``3f1c...9a.jpg``.
    """
    canonical = canonical_transform_string(identity, spec)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{digest}{OUTPUT_EXTENSION}"

