"""Shared test fixtures."""

import io
import logging

import numpy as np
import pytest
from PIL import Image

from donk.config import AppConfig
from donk.services.blob_store import BlobStore
from donk.services.instance_service import InstanceService
from donk.services.rebuild_locks import RebuildLocks
from donk.services.session_service import SessionService


def make_gradient(width: int, height: int) -> Image.Image:
    """RGB image whose every pixel differs from its neighbours."""
    xs = np.linspace(0, 255, width, dtype=np.float64)
    ys = np.linspace(0, 255, height, dtype=np.float64)
    arr = np.zeros((height, width, 3), dtype=np.uint8)
    arr[:, :, 0] = np.tile(xs, (height, 1)).astype(np.uint8)
    arr[:, :, 1] = np.tile(ys.reshape(height, 1), (1, width)).astype(np.uint8)
    arr[:, :, 2] = 128
    return Image.fromarray(arr, "RGB")


def jpeg_bytes(image: Image.Image, quality: int = 95) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def reset_donk_logger():
    """Undo the CLI's handler setup so caplog sees donk records."""
    yield
    logger = logging.getLogger("donk")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def source_image():
    """1200x800 gradient, a 4x4 grid gives 300x200 cells."""
    return make_gradient(1200, 800)


@pytest.fixture
def source_path(tmp_path, source_image):
    """Source image saved losslessly."""
    path = tmp_path / "source.png"
    source_image.save(path)
    return path


@pytest.fixture
def config(tmp_path):
    return AppConfig(data_dir=tmp_path / "data")


@pytest.fixture
def store(config):
    return BlobStore(config.data_dir)


@pytest.fixture
def instance_service(store, config):
    return InstanceService(store, config, locks=RebuildLocks())


@pytest.fixture
def session_service(instance_service):
    return SessionService(instance_service)


@pytest.fixture
def instance(instance_service, source_path):
    """4x4 instance over the 1200x800 source."""
    return instance_service.create(source_path, 4, 4)


@pytest.fixture
def red_tile():
    """Solid red 300x200 JPEG, one cell of a 4x4 grid over 1200x800."""
    return jpeg_bytes(Image.new("RGB", (300, 200), (255, 0, 0)))


@pytest.fixture
def blue_tile():
    return jpeg_bytes(Image.new("RGB", (300, 200), (0, 0, 255)))
