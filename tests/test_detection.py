from __future__ import annotations

import threading
import unittest

import cv2
import numpy as np

from pagescan.config import DetectionMethod, ScanConfig
from pagescan.context import ScanContext
from pagescan.detection import detect_corners, smart_crop
from pagescan.errors import DetectionError, InvalidInputError, ScanCancelledError
from pagescan.pipeline import process_image


def white_sheet_on_black(width=600, height=800, box=(50, 50, 550, 750)):
    img = np.zeros((height, width, 4), dtype=np.uint8)
    img[:, :, 3] = 255
    left, top, right, bottom = box
    img[top:bottom, left:right, :3] = 255
    return img


def dark_card_on_white(width=400, height=300):
    img = np.full((height, width, 3), 255, dtype=np.uint8)
    img[60:240, 80:320] = 90
    return img


SKEWED_CORNERS = ((90, 70), (520, 110), (560, 730), (40, 690))


def skewed_sheet_on_black():
    img = np.zeros((800, 600, 3), dtype=np.uint8)
    cv2.fillPoly(img, [np.array(SKEWED_CORNERS, dtype=np.int32)], (255, 255, 255))
    return img


class TestContourDetection(unittest.TestCase):
    def test_white_rectangle_on_black(self) -> None:
        result = detect_corners(white_sheet_on_black())
        self.assertEqual(result.method, DetectionMethod.CONTOURS)
        self.assertFalse(result.fallback_used)
        expected = np.array([(50, 50), (550, 50), (550, 750), (50, 750)], dtype=float)
        np.testing.assert_allclose(result.quad.as_array(), expected, atol=6)
        self.assertEqual(
            [method for method, _ in result.attempts],
            [DetectionMethod.ML, DetectionMethod.SMART_CROP],
        )
        self.assertIsNotNone(result.edges)
        self.assertTrue(set(np.unique(result.edges)) <= {0, 255})

    def test_rectified_size(self) -> None:
        page, detection = process_image(white_sheet_on_black())
        height, width = page.shape[:2]
        self.assertLessEqual(abs(width - 500), 15)
        self.assertLessEqual(abs(height - 700), 15)
        self.assertEqual(detection.method, DetectionMethod.CONTOURS)
        # centre of the page is the white sheet
        self.assertTrue(np.all(page[height // 2, width // 2] == 255))


class TestSkewedSheet(unittest.TestCase):
    def test_perspective_corners_found(self) -> None:
        result = detect_corners(skewed_sheet_on_black())
        self.assertEqual(result.method, DetectionMethod.CONTOURS)
        np.testing.assert_allclose(result.quad.as_array(), np.array(SKEWED_CORNERS, dtype=float), atol=6)

    def test_flattened_to_longest_edges(self) -> None:
        page, _ = process_image(skewed_sheet_on_black())
        height, width = page.shape[:2]
        # longest top/bottom edge about 522, longest side about 622
        self.assertLessEqual(abs(width - 522), 15)
        self.assertLessEqual(abs(height - 622), 15)
        self.assertTrue(np.all(page[height // 2, width // 2] == 255))
        self.assertTrue(np.all(page[20:-20, 20:-20, :3] == 255))


class TestFallbackChain(unittest.TestCase):
    def test_featureless_image_uses_default_inset(self) -> None:
        for value in (0, 128, 255):
            img = np.full((100, 200, 3), value, dtype=np.uint8)
            result = detect_corners(img)
            self.assertEqual(result.method, DetectionMethod.DEFAULT)
            self.assertTrue(result.fallback_used)
            self.assertEqual(
                [method for method, _ in result.attempts],
                [DetectionMethod.ML, DetectionMethod.SMART_CROP, DetectionMethod.CONTOURS],
            )
            self.assertEqual(
                result.quad.corners,
                ((10.0, 5.0), (190.0, 5.0), (190.0, 95.0), (10.0, 95.0)),
            )

    def test_smart_crop(self) -> None:
        result = detect_corners(dark_card_on_white())
        self.assertEqual(result.method, DetectionMethod.SMART_CROP)
        self.assertEqual(result.quad.corners, ((75.0, 55.0), (324.0, 55.0), (324.0, 244.0), (75.0, 244.0)))

    def test_small_featureless_images_use_default_inset(self) -> None:
        for shape in ((10, 10), (8, 1000), (12, 15)):
            img = np.full(shape + (3,), 100, dtype=np.uint8)
            with self.assertRaises(DetectionError):
                smart_crop(img)
            result = detect_corners(img)
            self.assertTrue(result.fallback_used, shape)
            self.assertEqual(len(result.attempts), 3)
            height, width = shape
            np.testing.assert_allclose(
                result.quad.as_array(),
                [(width * 0.05, height * 0.05), (width * 0.95, height * 0.05),
                 (width * 0.95, height * 0.95), (width * 0.05, height * 0.95)],
            )

    def test_smart_crop_rejects_full_coverage(self) -> None:
        with self.assertRaises(DetectionError):
            smart_crop(white_sheet_on_black(200, 200, (10, 10, 190, 190)))

    def test_regressor_wins_when_supplied(self) -> None:
        def regressor(img):
            return [(0.1, 0.2), (0.9, 0.2), (0.9, 0.8), (0.1, 0.8)]

        result = detect_corners(np.zeros((100, 200, 3), dtype=np.uint8), corner_regressor=regressor)
        self.assertEqual(result.method, DetectionMethod.ML)
        np.testing.assert_allclose(result.quad.as_array(), [(20, 20), (180, 20), (180, 80), (20, 80)])

    def test_regressor_errors_fall_through(self) -> None:
        def regressor(img):
            raise RuntimeError("model missing")

        result = detect_corners(dark_card_on_white(), corner_regressor=regressor)
        self.assertEqual(result.method, DetectionMethod.SMART_CROP)
        self.assertIn("model missing", result.attempts[0][1])

    def test_custom_order(self) -> None:
        config = ScanConfig(fallback_order=(DetectionMethod.CONTOURS,))
        result = detect_corners(dark_card_on_white(), config)
        self.assertEqual(result.method, DetectionMethod.CONTOURS)
        np.testing.assert_allclose(
            result.quad.as_array(), [(80, 60), (320, 60), (320, 240), (80, 240)], atol=4,
        )

    def test_downscaled_corners_map_back(self) -> None:
        img = np.full((1200, 1600, 3), 255, dtype=np.uint8)
        img[240:960, 320:1280] = 90
        result = detect_corners(img)
        self.assertEqual(result.scale, 600 / 1600)
        left, top = result.quad.corners[0]
        right, bottom = result.quad.corners[2]
        self.assertLessEqual(abs(left - 320), 20)
        self.assertLessEqual(abs(top - 240), 20)
        self.assertLessEqual(abs(right - 1280), 20)
        self.assertLessEqual(abs(bottom - 960), 20)


class TestDetectionInput(unittest.TestCase):
    def test_zero_sized_image_rejected(self) -> None:
        with self.assertRaises(InvalidInputError):
            detect_corners(np.zeros((0, 0, 3), dtype=np.uint8))

    def test_cancelled_context(self) -> None:
        context = ScanContext(ScanConfig(), threading.Event())
        context.cancel()
        with self.assertRaises(ScanCancelledError):
            detect_corners(white_sheet_on_black(), context=context)


if __name__ == "__main__":
    unittest.main()
