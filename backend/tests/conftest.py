"""
Image CDN 测试配置文件

pytest fixtures shared by the image CDN tests.

Fixtures 是测试的"准备工作"——在测试运行前创建所需的对象和环境：
- cdn_config: 指向临时目录的配置
- cache_store: 空的缓存存储
- make_staged: 在 staging 目录里放一个上传文件
- client: 带完整 lifespan 的 FastAPI TestClient
"""

import io
import os
import sys
import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from PIL import Image

# 添加 backend 目录到 Python 路径
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from image_cdn.app import create_app
from image_cdn.cache_store import ImageCacheStore
from image_cdn.config import CDNConfig
from image_cdn.models import StagedAsset


# ============================================
# Image Helpers
# ============================================

def make_image_bytes(width=100, height=100, fmt="PNG", mode="RGB", color=(200, 30, 30)):
    """生成一张纯色测试图片"""
    if mode == "RGBA" and len(color) == 3:
        color = (*color, 128)
    img = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_broken_chunk_png(width=256, height=256):
    """
    生成一张 IDAT 被拆成多个 chunk 的噪声 PNG，并把第二个 IDAT 的类型字节改坏

    Pillow 在解码途中读取下一个 chunk 时会抛出 SyntaxError。
    """
    noise = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
    buf = io.BytesIO()
    noise.save(buf, format="PNG")
    data = bytearray(buf.getvalue())

    first = data.find(b"IDAT")
    second = data.find(b"IDAT", first + 4)
    assert second > 0, "expected more than one IDAT chunk"
    data[second + 3] = 0x01
    return bytes(data)


def open_image(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


# ============================================
# Config / Store Fixtures
# ============================================

@pytest.fixture
def cdn_config(tmp_path):
    """每个测试使用独立的 staging / cache 目录"""
    config = CDNConfig(
        upload_dir=tmp_path / "uploads",
        cache_dir=tmp_path / "cache",
    )
    config.ensure_directories()
    return config


@pytest.fixture
def cache_store(cdn_config):
    return ImageCacheStore(cdn_config.cache_dir)


@pytest.fixture
def make_staged(cdn_config):
    """
    创建一个 staged 上传文件。

    使用方式：
    ```python
    asset = make_staged(make_image_bytes())
    ```
    """
    def _make(data: bytes, content_digest=None) -> StagedAsset:
        name = f"test-{uuid.uuid4().hex[:16]}"
        path = (cdn_config.upload_dir / name).resolve()
        path.write_bytes(data)
        return StagedAsset(
            filename=name,
            path=path,
            size_bytes=len(data),
            content_type="image/png",
            original_filename="source.png",
            content_digest=content_digest,
        )

    return _make


@pytest.fixture
def client(cdn_config):
    """
    带 lifespan 的 TestClient（sweeper 会随 app 启动/停止）
    """
    app = create_app(cdn_config)
    with TestClient(app) as test_client:
        yield test_client


# ============================================
# Helper Functions
# ============================================

def upload(client, data: bytes, filename="photo.png", content_type="image/png", **params):
    """POST /upload，query 参数透传"""
    return client.post(
        "/upload",
        params={k: v for k, v in params.items() if v is not None},
        files={"file": (filename, data, content_type)},
    )


def assert_no_staged_files(config: CDNConfig):
    """断言 staging 目录是空的"""
    leftovers = list(Path(config.upload_dir).iterdir())
    assert leftovers == [], f"Staged files left behind: {leftovers}"

