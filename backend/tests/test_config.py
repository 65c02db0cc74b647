"""Configuration tests"""

from pathlib import Path

from image_cdn.config import CDNConfig


def test_defaults():
    config = CDNConfig()
    assert config.retention_seconds == 7 * 24 * 3600
    assert config.sweep_interval_seconds == 24 * 3600
    assert config.max_upload_bytes == 5 * 1024 * 1024
    assert config.default_quality == 80
    assert config.allowed_extensions == {".jpg", ".jpeg", ".png"}


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("CDN_UPLOAD_DIR", str(tmp_path / "up"))
    monkeypatch.setenv("CDN_CACHE_DIR", str(tmp_path / "c"))
    monkeypatch.setenv("CDN_RETENTION_DAYS", "2")
    monkeypatch.setenv("CDN_SWEEP_INTERVAL_HOURS", "0.5")
    monkeypatch.setenv("CDN_MAX_UPLOAD_MB", "1")
    monkeypatch.setenv("CDN_RATE_LIMIT_MAX", "10")

    config = CDNConfig.from_env()

    assert config.upload_dir == tmp_path / "up"
    assert config.cache_dir == tmp_path / "c"
    assert config.retention_seconds == 2 * 24 * 3600
    assert config.sweep_interval_seconds == 1800
    assert config.max_upload_bytes == 1024 * 1024
    assert config.rate_limit_max == 10


def test_ensure_directories(tmp_path):
    config = CDNConfig(upload_dir=str(tmp_path / "a" / "up"), cache_dir=str(tmp_path / "b"))
    config.ensure_directories()
    assert isinstance(config.upload_dir, Path)
    assert config.upload_dir.is_dir()
    assert config.cache_dir.is_dir()
