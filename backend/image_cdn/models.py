"""
Image CDN Data Models

Plain dataclasses passed between the intake, orchestrator, store and
sweeper. HTTP request/response models live next to the routes.
"""

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .config import (
    DEFAULT_QUALITY,
    MAX_DIMENSION,
    MAX_QUALITY,
    MIN_DIMENSION,
    MIN_QUALITY,
)
from .errors import ErrorKind


def _to_number(value: Any) -> Optional[float]:
    """Parse a query value as a finite decimal number (``"1e3"`` ok, ``"0x10"`` not), or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def normalize_dimension(value: Any) -> Optional[int]:
    """Width/height in (0, 5000] -> int, anything else -> None (auto)."""
    number = _to_number(value)
    if number is None or number <= 0 or number > MAX_DIMENSION:
        return None
    dimension = int(number)
    # 0 < x < 1 truncates to zero, which means "auto"
    return dimension if dimension >= MIN_DIMENSION else None


def normalize_quality(value: Any, default: int = DEFAULT_QUALITY) -> int:
    """Quality in [1, 100] -> int, anything else -> default."""
    number = _to_number(value)
    if number is None or number < MIN_QUALITY or number > MAX_QUALITY:
        return default
    return int(number)


@dataclass(frozen=True)
class TransformSpec:
    """
    Normalized transform parameters.

    Never rejects input: invalid dimensions become None, invalid quality
    becomes the default.
    """
    width: Optional[int] = None
    height: Optional[int] = None
    quality: int = DEFAULT_QUALITY

    @classmethod
    def from_params(
        cls,
        width: Any = None,
        height: Any = None,
        quality: Any = None,
        default_quality: int = DEFAULT_QUALITY,
    ) -> "TransformSpec":
        return cls(
            width=normalize_dimension(width),
            height=normalize_dimension(height),
            quality=normalize_quality(quality, default_quality),
        )

    @property
    def needs_resize(self) -> bool:
        return self.width is not None or self.height is not None


@dataclass
class StagedAsset:
    """An uploaded source image sitting in the staging directory."""
    filename: str                           # Unique secure name in staging
    path: Path                              # Absolute staging path
    size_bytes: int
    content_type: str
    original_filename: str = ""
    content_digest: Optional[str] = None    # sha256 of the staged bytes

    @property
    def identity(self) -> str:
        """
        Identity used for cache keying.

        The content digest makes identical re-uploads share a key; without
        it each upload is keyed by its unique staging filename.
        """
        return self.content_digest or self.filename


@dataclass
class TransformResult:
    """Outcome of a submit: either a cache reference or a failure."""
    success: bool
    key: Optional[str] = None
    url: Optional[str] = None
    cache_hit: bool = False
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, key: str, url: str, cache_hit: bool) -> "TransformResult":
        return cls(success=True, key=key, url=url, cache_hit=cache_hit)

    @classmethod
    def failed(cls, kind: ErrorKind, error: str) -> "TransformResult":
        return cls(success=False, error_kind=kind, error=error)


@dataclass
class SweepReport:
    """Result of one eviction sweep."""
    scanned: int = 0
    deleted: int = 0
    failed: int = 0
    deleted_keys: list = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scanned": self.scanned,
            "deleted": self.deleted,
            "failed": self.failed,
            "duration_ms": self.duration_ms,
        }
