import io
import os
import tempfile
import time
import unittest
from unittest import mock

import requests
from PIL import Image

from document_engine.errors import AssetLoadError
from document_engine.services.assets import build_barcode, decode_image, load_image_asset


def _png_bytes(size=(40, 20), color=(0, 153, 255)):
    out = io.BytesIO()
    Image.new("RGB", size, color).save(out, format="PNG")
    return out.getvalue()


class DecodeImageTests(unittest.TestCase):
    def test_decodes_size(self):
        asset = decode_image(_png_bytes((40, 20)))
        self.assertEqual((asset.width, asset.height), (40, 20))
        self.assertAlmostEqual(asset.aspect, 2.0)
        self.assertTrue(asset.data.startswith(b"\x89PNG"))

    def test_garbage_raises(self):
        with self.assertRaises(AssetLoadError):
            decode_image(b"definitely not an image")


class LoadImageAssetTests(unittest.TestCase):
    def test_none_source(self):
        self.assertIsNone(load_image_asset(None))

    def test_loads_from_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "logo.png")
            with open(path, "wb") as fh:
                fh.write(_png_bytes((80, 40)))
            asset = load_image_asset(path)
        self.assertEqual(asset.width, 80)
        self.assertEqual(asset.fit_within(80, 40), (80, 40))

    def test_missing_file_is_logged_and_omitted(self):
        with self.assertLogs("document_engine.services.assets", level="WARNING"):
            self.assertIsNone(load_image_asset("/nonexistent/logo.png"))

    def test_invalid_bytes_are_logged_and_omitted(self):
        with self.assertLogs("document_engine.services.assets", level="WARNING"):
            self.assertIsNone(load_image_asset(b"not an image"))

    def test_download_failure_is_logged_and_omitted(self):
        with mock.patch("document_engine.services.assets.requests.get", side_effect=requests.ConnectionError("down")):
            with self.assertLogs("document_engine.services.assets", level="WARNING"):
                self.assertIsNone(load_image_asset("https://example.com/logo.png", timeout=1))

    def test_slow_download_times_out_and_is_omitted(self):
        def slow_get(url, timeout):
            time.sleep(1.0)
            raise requests.Timeout("too slow")

        with mock.patch("document_engine.services.assets.requests.get", side_effect=slow_get):
            with self.assertLogs("document_engine.services.assets", level="WARNING") as logs:
                started = time.monotonic()
                asset = load_image_asset("https://example.com/slow.png", timeout=0.2)
                elapsed = time.monotonic() - started
        self.assertIsNone(asset)
        self.assertLess(elapsed, 0.9)
        self.assertIn("not loaded within 0.2s", logs.output[0])

    def test_path_with_nul_byte_is_logged_and_omitted(self):
        with self.assertLogs("document_engine.services.assets", level="WARNING"):
            self.assertIsNone(load_image_asset("logo\x00.png"))


class BarcodeTests(unittest.TestCase):
    def test_qr_code_is_square(self):
        asset = build_barcode("INV-2025-000001")
        self.assertIsNotNone(asset)
        self.assertEqual(asset.width, asset.height)

    def test_empty_data(self):
        self.assertIsNone(build_barcode(""))


if __name__ == "__main__":
    unittest.main()
