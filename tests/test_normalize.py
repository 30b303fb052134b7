import tempfile
import unittest
from pathlib import Path

import numpy as np

from livelens_yolo.labels import COCO80, label_for, load_class_names, names_to_vocabulary
from livelens_yolo.letterbox import compute_letterbox
from livelens_yolo.normalize import normalize_detections


class TestNormalizeDetections(unittest.TestCase):
    def setUp(self) -> None:
        self.t = compute_letterbox(640, 480, 320)  # content 320x240, 40px bars top/bottom

    def _run(self, boxes, scores, class_ids, keep=None, thr=0.35):
        boxes = np.asarray(boxes, dtype=np.float64)
        scores = np.asarray(scores, dtype=np.float64)
        class_ids = np.asarray(class_ids, dtype=np.int64)
        keep = list(range(len(scores))) if keep is None else keep
        return normalize_detections(boxes, scores, class_ids, keep, self.t, score_threshold=thr)

    def test_removes_padding_and_normalizes(self) -> None:
        dets = self._run([[32, 64, 160, 160]], [0.8], [0])
        d = dets[0]
        self.assertEqual(d.label, "person")
        self.assertAlmostEqual(d.xmin, 0.1)
        self.assertAlmostEqual(d.ymin, 0.1)
        self.assertAlmostEqual(d.xmax, 0.5)
        self.assertAlmostEqual(d.ymax, 0.5)

    def test_clamps_into_content_area(self) -> None:
        dets = self._run([[-20, 10, 400, 300]], [0.9], [1])
        d = dets[0]
        self.assertEqual((d.xmin, d.ymin, d.xmax, d.ymax), (0.0, 0.0, 1.0, 1.0))

    def test_rechecks_floor_and_follows_keep_order(self) -> None:
        dets = self._run(
            [[0, 40, 10, 50], [10, 40, 20, 50], [20, 40, 30, 50]],
            [0.9, 0.2, 0.6],
            [0, 1, 2],
            keep=[2, 1, 0],
        )
        self.assertEqual([d.label for d in dets], ["car", "person"])

    def test_unknown_class_gets_synthetic_label(self) -> None:
        dets = self._run([[0, 40, 10, 50]], [0.9], [99])
        self.assertEqual(dets[0].label, "cls99")

    def test_round_trip_back_to_working_pixels(self) -> None:
        rng = np.random.default_rng(11)
        xy = rng.uniform(0, 200, size=(50, 2)) + np.array([0, 40])
        wh = rng.uniform(5, 100, size=(50, 2))
        boxes = np.concatenate([xy, np.minimum(xy + wh, [320, 280])], axis=1)
        dets = self._run(boxes, np.full(50, 0.9), np.zeros(50))

        for det, box in zip(dets, boxes):
            back = self.t.to_working(det.as_xyxy())
            self.assertTrue(np.allclose(back, box, atol=1e-6), (back, box))

    def test_to_dict_wire_shape(self) -> None:
        d = self._run([[32, 64, 160, 160]], [0.8], [0])[0]
        self.assertEqual(set(d.to_dict()), {"label", "score", "xmin", "ymin", "xmax", "ymax"})


class TestLabels(unittest.TestCase):
    def test_vocabulary(self) -> None:
        self.assertEqual(len(COCO80), 80)
        self.assertEqual(label_for(0), "person")
        self.assertEqual(label_for(79), "toothbrush")
        self.assertEqual(label_for(80), "cls80")
        self.assertEqual(label_for(-1), "cls-1")

    def test_load_class_names(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        path = Path(tmpdir.name) / "metadata.yaml"
        path.write_text("# model\nnames:\n  0: person\n  2: 'helmet'\n", encoding="utf-8")

        names = load_class_names(str(path))
        self.assertEqual(names, {0: "person", 2: "helmet"})
        self.assertEqual(names_to_vocabulary(names), ["person", "cls1", "helmet"])


if __name__ == "__main__":
    unittest.main()
