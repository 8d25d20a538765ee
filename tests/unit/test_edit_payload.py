"""Tests for edit payload normalization."""

import base64

import pytest
from PIL import Image

from donk.errors import MalformedImagePayload
from donk.services.session_service import normalize_edit_payload
from donk.utils.image_utils import decode_image, encode_jpeg, is_jpeg


@pytest.fixture
def jpeg():
    return encode_jpeg(Image.new("RGB", (30, 20), (200, 10, 10)))


class TestNormalizeEditPayload:
    """Test accepted payload envelopes."""

    def test_raw_bytes_pass_through(self, jpeg):
        assert normalize_edit_payload(jpeg) == jpeg

    def test_data_uri(self, jpeg):
        payload = b"data:image/jpeg;base64," + base64.b64encode(jpeg)
        assert normalize_edit_payload(payload) == jpeg

    def test_data_uri_as_text(self, jpeg):
        payload = "data:image/jpeg;base64," + base64.b64encode(jpeg).decode()
        assert normalize_edit_payload(payload) == jpeg

    def test_bare_base64(self, jpeg):
        assert normalize_edit_payload(base64.b64encode(jpeg)) == jpeg

    def test_png_data_uri_reencoded_as_jpeg(self, tmp_path):
        path = tmp_path / "edit.png"
        Image.new("RGB", (8, 8), (0, 0, 0)).save(path)
        png = path.read_bytes()

        result = normalize_edit_payload(b"data:image/png;base64," + base64.b64encode(png))
        assert is_jpeg(result)
        assert decode_image(result).size == (8, 8)

    def test_raw_png_reencoded_at_quality(self, tmp_path):
        path = tmp_path / "edit.png"
        Image.effect_noise((64, 48), 64).convert("RGB").save(path)
        png = path.read_bytes()

        low = normalize_edit_payload(png, quality=20)
        high = normalize_edit_payload(png, quality=95)
        assert is_jpeg(low) and is_jpeg(high)
        assert len(low) < len(high)

    def test_transparent_png_flattened_onto_white(self, tmp_path):
        path = tmp_path / "clear.png"
        Image.new("RGBA", (32, 32), (255, 0, 0, 0)).save(path)

        result = normalize_edit_payload(path.read_bytes())
        assert is_jpeg(result)
        r, g, b = decode_image(result).getpixel((16, 16))
        assert min(r, g, b) > 245


class TestMalformedPayloads:
    """Test rejection of undecodable payloads."""

    def test_invalid_base64(self):
        with pytest.raises(MalformedImagePayload):
            normalize_edit_payload(b"data:image/jpeg;base64,%%%%not-base64%%%%")

    def test_base64_of_non_image(self):
        with pytest.raises(MalformedImagePayload):
            normalize_edit_payload(b"data:image/jpeg;base64," + base64.b64encode(b"plain text"))

    def test_random_bytes(self):
        with pytest.raises(MalformedImagePayload):
            normalize_edit_payload(b"\x00\x01\x02 nonsense")

    def test_empty(self):
        with pytest.raises(MalformedImagePayload):
            normalize_edit_payload(b"")


class TestOversizedPayloads:
    """Test payloads beyond the decoder pixel limit."""

    def test_raw_bytes(self, jpeg, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        with pytest.raises(MalformedImagePayload):
            normalize_edit_payload(jpeg)

    def test_data_uri(self, jpeg, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        with pytest.raises(MalformedImagePayload):
            normalize_edit_payload(b"data:image/jpeg;base64," + base64.b64encode(jpeg))
