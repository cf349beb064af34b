from __future__ import annotations

import unittest

import numpy as np

from pagescan.config import ScanConfig
from pagescan.edges import (
    STRONG,
    WEAK,
    canny,
    double_threshold,
    gaussian_blur,
    gaussian_kernel,
    hysteresis,
    non_max_suppression,
    sobel,
)


def step_image(height=40, width=40, column=20):
    gray = np.zeros((height, width))
    gray[:, column:] = 255.0
    return gray


class TestGaussian(unittest.TestCase):
    def test_kernel_size_is_odd_and_normalized(self) -> None:
        for sigma in (0.5, 1.0, 1.4, 2.0, 3.3):
            kernel = gaussian_kernel(sigma)
            self.assertEqual(len(kernel) % 2, 1)
            self.assertAlmostEqual(float(kernel.sum()), 1.0, places=12)
        self.assertEqual(len(gaussian_kernel(1.4)), 9)

    def test_blur_keeps_constant_image(self) -> None:
        gray = np.full((12, 17), 77.0)
        np.testing.assert_allclose(gaussian_blur(gray, 1.4), gray)


class TestGradient(unittest.TestCase):
    def test_vertical_step_has_horizontal_gradient(self) -> None:
        magnitude, direction = sobel(step_image())
        row = magnitude[20]
        self.assertGreater(row[19], 0)
        self.assertGreater(row[20], 0)
        self.assertEqual(row[5], 0)
        self.assertAlmostEqual(float(direction[20, 20]), 0.0)
        # border is not computed
        self.assertFalse(magnitude[0].any())

    def test_suppression_thins_ridge(self) -> None:
        magnitude, direction = sobel(gaussian_blur(step_image(), 1.4))
        thin = non_max_suppression(magnitude, direction)
        self.assertLessEqual(np.count_nonzero(thin[20]), 2)
        self.assertGreater(np.count_nonzero(magnitude[20]), np.count_nonzero(thin[20]))


class TestSuppressionOrientations(unittest.TestCase):
    """A blurred step in each gradient orientation thins to at most two pixels across."""

    size = 40

    def thin(self, gray):
        magnitude, direction = sobel(gaussian_blur(gray, 1.4))
        return magnitude, non_max_suppression(magnitude, direction)

    def assert_thinned(self, magnitude, thin) -> None:
        self.assertGreater(np.count_nonzero(thin), 0)
        self.assertLessEqual(np.count_nonzero(thin), 2)
        self.assertGreater(np.count_nonzero(magnitude), np.count_nonzero(thin))

    def test_horizontal_step(self) -> None:
        gray = np.zeros((self.size, self.size))
        gray[20:, :] = 255.0
        magnitude, thin = self.thin(gray)
        self.assert_thinned(magnitude[:, 20], thin[:, 20])
        self.assertTrue(set(np.nonzero(thin[:, 20])[0]) <= {19, 20})

    def test_diagonal_step(self) -> None:
        ys, xs = np.mgrid[0:self.size, 0:self.size]
        gray = np.where(xs + ys >= self.size, 255.0, 0.0)
        magnitude, thin = self.thin(gray)
        self.assert_thinned(magnitude[20], thin[20])
        self.assertEqual(set(np.nonzero(thin[20])[0]), {19, 20})

    def test_anti_diagonal_step(self) -> None:
        ys, xs = np.mgrid[0:self.size, 0:self.size]
        gray = np.where(xs >= ys, 255.0, 0.0)
        magnitude, thin = self.thin(gray)
        self.assert_thinned(magnitude[20], thin[20])
        self.assertEqual(set(np.nonzero(thin[20])[0]), {19, 20})


class TestHysteresis(unittest.TestCase):
    def test_weak_pixels_connected_to_strong_are_promoted(self) -> None:
        suppressed = np.zeros((7, 7))
        suppressed[3, 1] = 100
        suppressed[3, 2] = 30
        suppressed[4, 3] = 30  # diagonal neighbour of (3, 2)
        suppressed[0, 6] = 30  # isolated

        classified = double_threshold(suppressed, 20, 50)
        self.assertEqual(classified[3, 1], STRONG)
        self.assertEqual(classified[0, 6], WEAK)

        edges = hysteresis(classified)
        self.assertEqual(edges[3, 2], 255)
        self.assertEqual(edges[4, 3], 255)
        self.assertEqual(edges[0, 6], 0)
        self.assertEqual(set(np.unique(edges)), {0, 255})


class TestCanny(unittest.TestCase):
    def test_output_is_binary(self) -> None:
        rng = np.random.default_rng(7)
        for gray in (rng.uniform(0, 255, (60, 80)), step_image(), np.zeros((5, 5))):
            edges = canny(gray)
            self.assertEqual(edges.dtype, np.uint8)
            self.assertTrue(set(np.unique(edges)) <= {0, 255})

    def test_uniform_image_has_no_edges(self) -> None:
        self.assertFalse(canny(np.full((50, 50), 128.0)).any())

    def test_step_edge_found_with_both_presets(self) -> None:
        for name in ("adaptive", "fixed"):
            edges = canny(step_image(), ScanConfig.preset(name))
            columns = np.nonzero(edges[20])[0]
            self.assertTrue(len(columns) > 0, name)
            self.assertTrue(np.all(np.abs(columns - 19.5) <= 2), name)

    def test_tiny_image(self) -> None:
        self.assertEqual(canny(np.zeros((2, 2))).shape, (2, 2))


if __name__ == "__main__":
    unittest.main()
