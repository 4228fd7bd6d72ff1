import tempfile
import unittest
from pathlib import Path

import numpy as np

from yolo_autolabel.errors import ImageDecodeError
from yolo_autolabel.half import f32_to_f16
from yolo_autolabel.preprocess import ImagePreprocessor, read_image


class TestImagePreprocessor(unittest.TestCase):
    def test_ratio_and_shape(self) -> None:
        image = np.zeros((720, 1280, 3), dtype=np.uint8)
        prep = ImagePreprocessor(640, 640).preprocess(image)
        self.assertEqual(prep.orig_size, (1280, 720))
        self.assertEqual(prep.ratio.x, 2.0)
        self.assertEqual(prep.ratio.y, 1.125)
        self.assertEqual(prep.tensor.shape, (1, 3, 640, 640))
        self.assertEqual(prep.tensor.dtype, np.uint16)
        self.assertEqual(prep.tensor.size, 3 * 640 * 640)

    def test_non_square_input_size(self) -> None:
        prep = ImagePreprocessor(input_width=320, input_height=256).preprocess(np.zeros((100, 200, 3), dtype=np.uint8))
        self.assertEqual(prep.tensor.shape, (1, 3, 256, 320))
        self.assertEqual(prep.ratio.x, 200 / 320)
        self.assertEqual(prep.ratio.y, 100 / 256)

    def test_planar_rgb_normalized(self) -> None:
        image = np.zeros((4, 4, 3), dtype=np.uint8)
        image[:, :] = (0, 128, 255)  # BGR
        prep = ImagePreprocessor(4, 4).preprocess(image)
        flat = prep.tensor.reshape(-1)
        plane = 4 * 4
        half_128 = f32_to_f16(float(np.float32(128) / np.float32(255)))
        self.assertTrue(np.all(flat[0:plane] == 0x3C00))  # R = 1.0
        self.assertTrue(np.all(flat[plane : 2 * plane] == half_128))  # G
        self.assertTrue(np.all(flat[2 * plane :] == 0))  # B

    def test_pixel_position_in_plane(self) -> None:
        w, h = 5, 3
        image = np.zeros((h, w, 3), dtype=np.uint8)
        image[1, 3] = (255, 0, 0)  # blue pixel at x=3, y=1
        flat = ImagePreprocessor(w, h).preprocess(image).tensor.reshape(-1)
        blue_index = 2 * h * w + 1 * w + 3
        self.assertEqual(int(flat[blue_index]), 0x3C00)
        self.assertEqual(int(np.count_nonzero(flat)), 1)

    def test_stretch_resize_uniform_image(self) -> None:
        image = np.full((100, 300, 3), 255, dtype=np.uint8)
        prep = ImagePreprocessor(64, 64).preprocess(image)
        self.assertTrue(np.all(prep.tensor == 0x3C00))

    def test_reads_image_file(self) -> None:
        import cv2

        image = np.zeros((30, 40, 3), dtype=np.uint8)
        image[:, :, 2] = 255  # red
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "img.png"
            self.assertTrue(cv2.imwrite(str(path), image))
            prep = ImagePreprocessor(40, 30).preprocess(path)
        self.assertEqual(prep.orig_size, (40, 30))
        self.assertTrue(np.all(prep.tensor[0, 0] == 0x3C00))
        self.assertTrue(np.all(prep.tensor[0, 1:] == 0))

    def test_grayscale_and_alpha_inputs(self) -> None:
        gray = np.full((8, 8), 255, dtype=np.uint8)
        self.assertTrue(np.all(ImagePreprocessor(8, 8).preprocess(gray).tensor == 0x3C00))
        bgra = np.zeros((8, 8, 4), dtype=np.uint8)
        self.assertEqual(read_image(bgra).shape, (8, 8, 3))

    def test_missing_file(self) -> None:
        with self.assertRaises(ImageDecodeError):
            ImagePreprocessor().preprocess("does/not/exist.jpg")

    def test_corrupt_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "broken.jpg"
            path.write_bytes(b"not an image")
            with self.assertRaises(ImageDecodeError):
                ImagePreprocessor().preprocess(path)

    def test_bad_array_shape(self) -> None:
        with self.assertRaises(ImageDecodeError):
            ImagePreprocessor().preprocess(np.zeros((4, 4, 2), dtype=np.uint8))
        with self.assertRaises(ImageDecodeError):
            ImagePreprocessor().preprocess(np.zeros((0, 4, 3), dtype=np.uint8))

    def test_non_uint8_arrays_rejected(self) -> None:
        for dtype in (np.int64, np.float32, np.float64, bool):
            with self.subTest(dtype=dtype):
                with self.assertRaises(ImageDecodeError):
                    ImagePreprocessor(4, 4).preprocess(np.zeros((8, 8, 3), dtype=dtype))
        with self.assertRaises(ImageDecodeError):
            ImagePreprocessor(4, 4).preprocess(np.zeros((8, 8), dtype=np.int64))

    def test_four_dimensional_array_rejected(self) -> None:
        with self.assertRaises(ImageDecodeError):
            ImagePreprocessor(4, 4).preprocess(np.zeros((1, 8, 8, 3), dtype=np.uint8))

    def test_decode_error_is_os_error(self) -> None:
        with self.assertRaises(OSError):
            read_image("does/not/exist.png")


if __name__ == "__main__":
    unittest.main()
