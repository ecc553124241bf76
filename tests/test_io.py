"""Tests for image I/O utilities."""

import base64
import os
import shutil
import tempfile
import unittest
from io import BytesIO

import numpy as np
from PIL import Image

from MapBrew.core import (
    DecodeError, PixelBuffer, decode_image, encode_png, load_image, save_image, to_data_uri,
)
from MapBrew.core.io import luminance, mean_intensity

from conftest import random_buffer, save_test_png, solid_buffer


def _png_bytes(img, **save_kwargs):
    out = BytesIO()
    img.save(out, format="PNG", **save_kwargs)
    return out.getvalue()


class TestDecodeImage(unittest.TestCase):
    def test_decode_png_bytes_rgb(self):
        arr = np.random.default_rng(3).integers(0, 256, size=(5, 7, 3), dtype=np.uint8)
        buf = decode_image(_png_bytes(Image.fromarray(arr)))
        self.assertEqual(buf.size, (7, 5))
        self.assertEqual(buf.channels, 3)
        np.testing.assert_array_equal(buf.pixels, arr)

    def test_decode_keeps_alpha(self):
        arr = np.zeros((4, 4, 4), dtype=np.uint8)
        arr[:, :, 3] = 128
        buf = decode_image(_png_bytes(Image.fromarray(arr)))
        self.assertEqual(buf.channels, 4)
        self.assertTrue(np.all(buf.alpha == 128))

    def test_grayscale_expands_to_rgb(self):
        gray = np.arange(16, dtype=np.uint8).reshape(4, 4)
        buf = decode_image(_png_bytes(Image.fromarray(gray)))
        self.assertEqual(buf.channels, 3)
        for c in range(3):
            np.testing.assert_array_equal(buf.pixels[:, :, c], gray)

    def test_palette_without_transparency_is_rgb(self):
        img = Image.new("P", (3, 3), color=1)
        img.putpalette([0, 0, 0, 200, 100, 50] + [0] * (256 * 3 - 6))
        buf = decode_image(_png_bytes(img))
        self.assertEqual(buf.channels, 3)
        self.assertEqual(tuple(buf.pixels[0, 0]), (200, 100, 50))

    def test_palette_with_transparency_is_rgba(self):
        img = Image.new("P", (3, 3), color=0)
        img.putpalette([10, 20, 30] + [0] * (256 * 3 - 3))
        buf = decode_image(_png_bytes(img, transparency=0))
        self.assertEqual(buf.channels, 4)
        self.assertEqual(int(buf.pixels[0, 0, 3]), 0)

    def test_data_uri(self):
        src = random_buffer(6, 4, channels=4, seed=9)
        buf = decode_image(to_data_uri(src))
        self.assertEqual(buf, src)

    def test_data_uri_without_mime(self):
        payload = base64.b64encode(encode_png(solid_buffer(2, 2, (1, 2, 3)))).decode("ascii")
        buf = decode_image(f"data:;base64,{payload}")
        self.assertEqual(tuple(buf.pixels[1, 1]), (1, 2, 3))

    def test_garbage_bytes_raise_decode_error(self):
        with self.assertRaises(DecodeError):
            decode_image(b"definitely not an image")

    def test_empty_bytes_raise_decode_error(self):
        with self.assertRaises(DecodeError):
            decode_image(b"")

    def test_malformed_data_uri(self):
        for uri in (
            "data:image/png;base64",               # no comma
            "data:image/png,rawpayload",           # not base64
            "data:image/png;base64,@@not-b64@@",   # bad payload
            "data:text/plain;base64,aGVsbG8=",     # not an image
        ):
            with self.subTest(uri=uri):
                with self.assertRaises(DecodeError):
                    decode_image(uri)

    def test_plain_string_is_rejected(self):
        with self.assertRaises(DecodeError):
            decode_image("textures/brick.png")

    def test_wrong_type_raises_type_error(self):
        with self.assertRaises(TypeError):
            decode_image(12345)

    def test_sixteen_bit_image_rejected(self):
        arr = np.full((4, 4), 40000, dtype=np.uint16)
        with self.assertRaises(DecodeError):
            decode_image(_png_bytes(Image.fromarray(arr)))

    def test_max_pixels_guard(self):
        data = _png_bytes(Image.new("RGB", (16, 16)))
        with self.assertRaises(DecodeError):
            decode_image(data, max_pixels=100)
        self.assertEqual(decode_image(data, max_pixels=256).size, (16, 16))

    def test_negative_max_pixels(self):
        with self.assertRaises(ValueError):
            decode_image(_png_bytes(Image.new("RGB", (2, 2))), max_pixels=-1)


class TestFileIO(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_load_image(self):
        path = os.path.join(self.tmpdir, "albedo.png")
        arr = save_test_png(path, width=8, height=6)
        buf = load_image(path)
        np.testing.assert_array_equal(buf.pixels, arr)

    def test_load_missing_file_raises_os_error(self):
        with self.assertRaises(OSError):
            load_image(os.path.join(self.tmpdir, "missing.png"))

    def test_load_corrupt_file_raises_decode_error(self):
        path = os.path.join(self.tmpdir, "broken.png")
        with open(path, "wb") as f:
            f.write(b"\x89PNG\r\n\x1a\n truncated")
        with self.assertRaises(DecodeError):
            load_image(path)

    def test_save_load_roundtrip_is_exact(self):
        src = random_buffer(9, 7, channels=4, seed=5)
        path = os.path.join(self.tmpdir, "nested", "out.png")
        save_image(src, path)
        self.assertEqual(load_image(path), src)
        leftovers = [n for n in os.listdir(os.path.dirname(path)) if ".tmp." in n]
        self.assertEqual(leftovers, [])

    def test_save_rejects_lossy_extension(self):
        with self.assertRaises(ValueError):
            save_image(solid_buffer(2, 2, (0, 0, 0)), os.path.join(self.tmpdir, "out.jpg"))
        self.assertFalse(os.path.exists(os.path.join(self.tmpdir, "out.jpg")))

    def test_encode_png_is_png(self):
        data = encode_png(solid_buffer(3, 3, (5, 6, 7)), compress_level=0)
        self.assertTrue(data.startswith(b"\x89PNG"))
        with Image.open(BytesIO(data)) as img:
            self.assertEqual(img.mode, "RGB")
            self.assertEqual(img.size, (3, 3))


class TestIntensity(unittest.TestCase):
    def test_mean_intensity_ignores_alpha(self):
        buf = solid_buffer(2, 2, (30, 60, 90, 0))
        np.testing.assert_allclose(mean_intensity(buf), 60.0)

    def test_luminance_range(self):
        self.assertTrue(np.all(luminance(solid_buffer(2, 2, (255, 255, 255))) == 1.0))
        self.assertTrue(np.all(luminance(solid_buffer(2, 2, (0, 0, 0))) == 0.0))
        buf = PixelBuffer(np.array([[[255, 0, 0]]], dtype=np.uint8))
        np.testing.assert_allclose(luminance(buf), 1.0 / 3.0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
