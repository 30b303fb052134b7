import unittest

import numpy as np

from livelens_yolo.letterbox import compute_letterbox, letterbox_image


class TestComputeLetterbox(unittest.TestCase):
    def test_landscape_640x480_into_320(self) -> None:
        t = compute_letterbox(640, 480, 320)
        self.assertAlmostEqual(t.scale, 0.5)
        self.assertEqual((t.output_width, t.output_height), (320, 240))
        self.assertEqual((t.pad_width, t.pad_height), (0, 80))
        self.assertEqual((t.pad_left, t.pad_top), (0, 40))

    def test_portrait_source(self) -> None:
        t = compute_letterbox(480, 640, 320)
        self.assertEqual((t.output_width, t.output_height), (240, 320))
        self.assertEqual((t.pad_left, t.pad_top), (40, 0))

    def test_odd_padding_biased_left_top(self) -> None:
        # 1000x333 -> scale 0.32, output 320x107, pad 213 -> top 106 / bottom 107
        t = compute_letterbox(1000, 333, 320)
        self.assertEqual(t.output_height, 107)
        self.assertEqual(t.pad_height, 213)
        self.assertEqual(t.pad_top, 106)

    def test_upscales_small_frames(self) -> None:
        t = compute_letterbox(160, 120, 320)
        self.assertAlmostEqual(t.scale, 2.0)
        self.assertEqual((t.output_width, t.output_height), (320, 240))

    def test_fits_exactly_one_axis(self) -> None:
        rng = np.random.default_rng(7)
        for _ in range(200):
            w, h = (int(v) for v in rng.integers(1, 4000, size=2))
            target = int(rng.integers(16, 1024))
            t = compute_letterbox(w, h, target)
            self.assertLessEqual(t.output_width, target)
            self.assertLessEqual(t.output_height, target)
            self.assertTrue(t.output_width == target or t.output_height == target, (w, h, target))
            self.assertGreaterEqual(t.pad_left, 0)
            self.assertGreaterEqual(t.pad_top, 0)

    def test_non_positive_dimensions_rejected(self) -> None:
        for args in ((0, 480, 320), (640, -1, 320), (640, 480, 0)):
            with self.assertRaises(ValueError):
                compute_letterbox(*args)

    def test_inverse_mappings(self) -> None:
        t = compute_letterbox(640, 480, 320)
        self.assertEqual(t.to_working((0.0, 0.0, 1.0, 1.0)), (0.0, 40.0, 320.0, 280.0))
        self.assertEqual(t.to_source((0.25, 0.5, 0.75, 1.0)), (160.0, 240.0, 480.0, 480.0))


class TestLetterboxImage(unittest.TestCase):
    def test_draws_rgba_with_black_padding(self) -> None:
        image = np.zeros((480, 640, 3), dtype=np.uint8)
        image[:, :] = (255, 0, 0)  # BGR blue
        t = compute_letterbox(640, 480, 320)

        out = letterbox_image(image, t)
        self.assertEqual(out.shape, (320, 320, 4))
        self.assertEqual(out.dtype, np.uint8)

        # content rows carry RGB blue, padding rows are opaque black
        self.assertEqual(tuple(out[160, 160]), (0, 0, 255, 255))
        self.assertEqual(tuple(out[10, 160]), (0, 0, 0, 255))
        self.assertEqual(tuple(out[310, 160]), (0, 0, 0, 255))
        self.assertEqual(tuple(out[40, 0]), (0, 0, 255, 255))
        self.assertEqual(tuple(out[39, 0]), (0, 0, 0, 255))

    def test_size_mismatch_rejected(self) -> None:
        image = np.zeros((100, 100, 3), dtype=np.uint8)
        with self.assertRaises(ValueError):
            letterbox_image(image, compute_letterbox(640, 480, 320))


if __name__ == "__main__":
    unittest.main()
