from __future__ import annotations

import unittest

import numpy as np

from pagescan.errors import InvalidInputError, SingularHomographyError
from pagescan.homography import get_perspective_transform
from pagescan.warp import rectify, warp_perspective


def smooth_content(width=160, height=120):
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:, :, 0] = np.rint(xs * 255 / (width - 1))
    img[:, :, 1] = np.rint(ys * 255 / (height - 1))
    img[:, :, 2] = np.rint(128 + 100 * np.sin(xs / 20) * np.cos(ys / 15))
    return img


class TestWarpPerspective(unittest.TestCase):
    def test_round_trip_recovers_content(self) -> None:
        content = smooth_content()
        height, width = content.shape[:2]
        page_corners = np.array([(0, 0), (width - 1, 0), (width - 1, height - 1), (0, height - 1)], dtype=float)
        photo_corners = np.array([(40, 30), (260, 50), (250, 230), (30, 210)], dtype=float)

        forward = get_perspective_transform(page_corners, photo_corners)
        photo = warp_perspective(content, forward, (300, 260))
        backward = get_perspective_transform(photo_corners, page_corners)
        recovered = warp_perspective(photo, backward, (width, height))

        error = np.abs(recovered[2:-2, 2:-2, :3].astype(float) - content[2:-2, 2:-2].astype(float))
        self.assertLess(error.mean(), 2.0)
        self.assertTrue(np.all(recovered[2:-2, 2:-2, 3] == 255))

    def test_outside_source_is_transparent(self) -> None:
        content = smooth_content(20, 10)
        page = warp_perspective(content, np.eye(3), (30, 15))
        self.assertEqual(page.shape, (15, 30, 4))
        np.testing.assert_array_equal(page[:10, :20, :3], content)
        self.assertTrue(np.all(page[:10, :20, 3] == 255))
        self.assertFalse(page[:, 20:].any())
        self.assertFalse(page[10:, :].any())

    def test_alpha_passes_through(self) -> None:
        rgba = np.zeros((10, 10, 4), dtype=np.uint8)
        rgba[:, :, 3] = 77
        page = warp_perspective(rgba, np.eye(3), (10, 10))
        self.assertTrue(np.all(page[:, :, 3] == 77))


class TestRectify(unittest.TestCase):
    def test_axis_aligned_crop_is_exact(self) -> None:
        img = smooth_content(200, 150)
        corners = [(20, 10), (119, 10), (119, 89), (20, 89)]
        page, matrix = rectify(img, corners)
        self.assertEqual(page.shape, (79, 99, 4))
        np.testing.assert_array_equal(page[:, :, :3], img[10:89, 20:119])
        self.assertEqual(matrix.shape, (3, 3))

    def test_source_not_modified(self) -> None:
        img = smooth_content()
        before = img.copy()
        rectify(img, [(10, 10), (100, 12), (98, 90), (12, 88)])
        np.testing.assert_array_equal(img, before)

    def test_collinear_corners_fail(self) -> None:
        with self.assertRaises(SingularHomographyError):
            rectify(smooth_content(), [(0, 0), (10, 0), (20, 0), (5, 10)])

    def test_invalid_input(self) -> None:
        with self.assertRaises(InvalidInputError):
            rectify(np.zeros((0, 10, 3), dtype=np.uint8), [(0, 0), (1, 0), (1, 1), (0, 1)])
        with self.assertRaises(InvalidInputError):
            rectify(smooth_content(), [(0, 0), (10, 0), (10, 0), (0, 10)])


if __name__ == "__main__":
    unittest.main()
