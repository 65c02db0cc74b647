"""
Image CDN Configuration

All tunables are read from the environment with sensible defaults.
Fixed limits (dimension/quality bounds, allowed extensions) live here as
module constants.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet

# ============================================
# Fixed limits
# ============================================

ALLOWED_EXTENSIONS: FrozenSet[str] = frozenset({".jpg", ".jpeg", ".png"})

MIN_DIMENSION = 1
MAX_DIMENSION = 5000

MIN_QUALITY = 1
MAX_QUALITY = 100
DEFAULT_QUALITY = 80

# Every rendition is re-encoded to JPEG
OUTPUT_EXTENSION = ".jpg"
OUTPUT_FORMAT = "JPEG"
OUTPUT_CONTENT_TYPE = "image/jpeg"


@dataclass
class CDNConfig:
    """Runtime configuration for the image CDN."""
    # Directories
    upload_dir: Path = Path("./uploads")
    cache_dir: Path = Path("./cdn_cache")

    # Eviction
    retention_seconds: float = 7 * 24 * 60 * 60    # 7 days
    sweep_interval_seconds: float = 24 * 60 * 60   # 24 hours

    # Intake
    max_upload_bytes: int = 5 * 1024 * 1024        # 5 MB
    allowed_extensions: FrozenSet[str] = field(default_factory=lambda: ALLOWED_EXTENSIONS)
    default_quality: int = DEFAULT_QUALITY

    # Rate limiting (per client IP)
    rate_limit_max: int = 100
    rate_limit_window_seconds: float = 15 * 60

    def __post_init__(self):
        self.upload_dir = Path(self.upload_dir)
        self.cache_dir = Path(self.cache_dir)

    @classmethod
    def from_env(cls) -> "CDNConfig":
        """Build a config from CDN_* environment variables."""
        return cls(
            upload_dir=Path(os.getenv("CDN_UPLOAD_DIR", "./uploads")),
            cache_dir=Path(os.getenv("CDN_CACHE_DIR", "./cdn_cache")),
            retention_seconds=float(os.getenv("CDN_RETENTION_DAYS", "7")) * 24 * 3600,
            sweep_interval_seconds=float(os.getenv("CDN_SWEEP_INTERVAL_HOURS", "24")) * 3600,
            max_upload_bytes=int(float(os.getenv("CDN_MAX_UPLOAD_MB", "5")) * 1024 * 1024),
            default_quality=int(os.getenv("CDN_DEFAULT_QUALITY", str(DEFAULT_QUALITY))),
            rate_limit_max=int(os.getenv("CDN_RATE_LIMIT_MAX", "100")),
            rate_limit_window_seconds=float(os.getenv("CDN_RATE_LIMIT_WINDOW_MINUTES", "15")) * 60,
        )

    def ensure_directories(self) -> None:
        """Create the staging and cache roots if they don't exist."""
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
