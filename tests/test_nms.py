import unittest

import numpy as np

from yolo_autolabel.nms import NMSConfig, iou, nms


class TestIoU(unittest.TestCase):
    def test_identical_boxes(self) -> None:
        self.assertEqual(iou((0, 0, 10, 10), (0, 0, 10, 10)), 1.0)

    def test_disjoint_boxes(self) -> None:
        self.assertEqual(iou((0, 0, 10, 10), (20, 20, 30, 30)), 0.0)
        self.assertEqual(iou((0, 0, 10, 10), (11, 0, 20, 10)), 0.0)
        # Overlap on one axis only.
        self.assertEqual(iou((0, 0, 10, 10), (5, 20, 15, 30)), 0.0)

    def test_touching_edges(self) -> None:
        self.assertEqual(iou((0, 0, 10, 10), (10, 0, 20, 10)), 0.0)

    def test_partial_overlap(self) -> None:
        self.assertAlmostEqual(iou((0, 0, 10, 10), (0, 0, 10, 6)), 0.6)
        self.assertAlmostEqual(iou((0, 0, 10, 10), (5, 0, 15, 10)), 50 / 150)

    def test_zero_area_boxes(self) -> None:
        self.assertEqual(iou((5, 5, 5, 5), (5, 5, 5, 5)), 0.0)

    def test_bounds_on_random_boxes(self) -> None:
        rng = np.random.default_rng(3)
        for _ in range(300):
            a = np.sort(rng.uniform(0, 100, size=(2, 2)), axis=0).T.reshape(-1)[[0, 2, 1, 3]]
            b = np.sort(rng.uniform(0, 100, size=(2, 2)), axis=0).T.reshape(-1)[[0, 2, 1, 3]]
            value = iou(a, b)
            self.assertGreaterEqual(value, 0.0)
            self.assertLessEqual(value, 1.0)
            self.assertAlmostEqual(value, iou(b, a))


class TestNMS(unittest.TestCase):
    def test_empty_input(self) -> None:
        keep = nms(np.empty((0, 4)), np.empty((0,)), NMSConfig())
        self.assertEqual(keep.tolist(), [])

    def test_single_candidate(self) -> None:
        keep = nms(np.array([[270, 295, 370, 345]], dtype=np.float32), np.array([0.72]), NMSConfig(0.45))
        self.assertEqual(keep.tolist(), [0])

    def test_overlap_above_threshold_keeps_higher_score(self) -> None:
        boxes = np.array([[0, 0, 10, 6], [0, 0, 10, 10]], dtype=np.float32)  # IoU 0.6
        self.assertEqual(nms(boxes, np.array([0.8, 0.9]), NMSConfig(0.45)).tolist(), [1])
        self.assertEqual(nms(boxes, np.array([0.9, 0.8]), NMSConfig(0.45)).tolist(), [0])

    def test_iou_equal_to_threshold_is_not_suppressed(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [0, 0, 10, 4.5]])  # IoU exactly 0.45
        keep = nms(boxes, np.array([0.9, 0.8]), NMSConfig(0.45))
        self.assertEqual(keep.tolist(), [0, 1])

    def test_result_in_descending_score_order(self) -> None:
        boxes = np.array(
            [
                [0, 0, 10, 10],
                [100, 100, 110, 110],
                [200, 200, 210, 210],
            ],
            dtype=np.float32,
        )
        keep = nms(boxes, np.array([0.5, 0.9, 0.7]), NMSConfig(0.45))
        self.assertEqual(keep.tolist(), [1, 2, 0])

    def test_equal_scores_prefer_lower_index(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [1, 1, 11, 11], [0, 0, 10, 10]], dtype=np.float32)
        keep = nms(boxes, np.array([0.8, 0.8, 0.8]), NMSConfig(0.45))
        self.assertEqual(keep.tolist(), [0])

    def test_suppressed_box_does_not_suppress_others(self) -> None:
        # B overlaps A and C heavily; A and C are far enough apart to both survive
        boxes = np.array(
            [
                [0, 0, 10, 10],  # A
                [3, 0, 13, 10],  # B, IoU(A,B)=7/13
                [6, 0, 16, 10],  # C, IoU(A,C)=4/16, IoU(B,C)=7/13
            ],
            dtype=np.float32,
        )
        keep = nms(boxes, np.array([0.9, 0.8, 0.7]), NMSConfig(0.45))
        self.assertEqual(keep.tolist(), [0, 2])

    def test_idempotent_on_own_output(self) -> None:
        rng = np.random.default_rng(11)
        xy = rng.uniform(0, 500, size=(60, 2))
        wh = rng.uniform(10, 80, size=(60, 2))
        boxes = np.hstack([xy, xy + wh])
        scores = rng.uniform(0, 1, size=60)
        cfg = NMSConfig(0.45)

        keep = nms(boxes, scores, cfg)
        again = nms(boxes[keep], scores[keep], cfg)
        self.assertEqual(keep[again].tolist(), keep.tolist())

    def test_output_is_subset_of_input(self) -> None:
        rng = np.random.default_rng(5)
        xy = rng.uniform(0, 100, size=(40, 2))
        boxes = np.hstack([xy, xy + 30])
        keep = nms(boxes, rng.uniform(size=40), NMSConfig(0.3))
        self.assertEqual(len(set(keep.tolist())), len(keep))
        self.assertTrue(all(0 <= i < 40 for i in keep.tolist()))

    def test_inverted_box_rejected(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [10, 0, 0, 10]], dtype=np.float32)
        with self.assertRaises(ValueError):
            nms(boxes, np.array([0.9, 0.8]), NMSConfig())

    def test_max_detections(self) -> None:
        boxes = np.array([[i * 20, 0, i * 20 + 10, 10] for i in range(5)], dtype=np.float32)
        keep = nms(boxes, np.array([0.1, 0.5, 0.3, 0.9, 0.2]), NMSConfig(0.45, max_detections=2))
        self.assertEqual(keep.tolist(), [3, 1])

    def test_class_aware_mode(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [0, 0, 10, 10], [0, 0, 10, 9]], dtype=np.float32)
        scores = np.array([0.9, 0.8, 0.7])
        class_ids = np.array([0, 1, 0])
        agnostic = nms(boxes, scores, NMSConfig(0.45), class_ids=class_ids)
        self.assertEqual(agnostic.tolist(), [0])
        per_class = nms(boxes, scores, NMSConfig(0.45, class_agnostic=False), class_ids=class_ids)
        self.assertEqual(per_class.tolist(), [0, 1])

    def test_class_aware_without_class_ids_rejected(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [0, 0, 10, 10]], dtype=np.float32)
        with self.assertRaises(ValueError):
            nms(boxes, np.array([0.9, 0.8]), NMSConfig(0.45, class_agnostic=False))
        with self.assertRaises(ValueError):
            nms(np.zeros((0, 4)), np.zeros(0), NMSConfig(0.45, class_agnostic=False))

    def test_class_ids_length_mismatch(self) -> None:
        boxes = np.array([[0, 0, 10, 10], [0, 0, 10, 10]], dtype=np.float32)
        with self.assertRaises(ValueError):
            nms(boxes, np.array([0.9, 0.8]), NMSConfig(0.45, class_agnostic=False), class_ids=np.array([0]))

    def test_non_positive_max_detections_rejected(self) -> None:
        with self.assertRaises(ValueError):
            nms(np.zeros((1, 4)), np.ones(1), NMSConfig(0.45, max_detections=0))

    def test_length_mismatch(self) -> None:
        with self.assertRaises(ValueError):
            nms(np.zeros((2, 4)), np.zeros(3), NMSConfig())


if __name__ == "__main__":
    unittest.main()
