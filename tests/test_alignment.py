import numpy as np

from facehud.detectors.face_retina import FaceDetection, RetinaFaceDetector, crop_to_bbox


def test_align_to_112_shape():
    image = np.zeros((480, 640, 3), dtype=np.uint8)
    aligned = RetinaFaceDetector.align_to_112(image, None)
    assert aligned.shape == (112, 112, 3)


def test_align_to_112_crops_bbox_without_landmarks():
    image = np.zeros((480, 640, 3), dtype=np.uint8)
    image[160:440, 120:400] = 255
    detection = FaceDetection(bbox=(120.0, 160.0, 400.0, 440.0), score=0.9)
    aligned = RetinaFaceDetector.align_to_112(image, detection)
    assert aligned.shape == (112, 112, 3)
    assert aligned.min() == 255


def test_align_to_112_warps_with_five_landmarks():
    image = np.full((200, 200, 3), 128, dtype=np.uint8)
    landmarks = np.array(
        [[76.0, 103.0], [147.0, 103.0], [112.0, 143.0], [83.0, 185.0], [141.0, 184.0]],
        dtype=np.float32,
    )
    detection = FaceDetection(bbox=(40.0, 40.0, 180.0, 200.0), score=0.9, landmarks=landmarks)
    aligned = RetinaFaceDetector.align_to_112(image, detection)
    assert aligned.shape == (112, 112, 3)


def test_crop_to_bbox_falls_back_to_full_image_for_degenerate_box():
    image = np.zeros((10, 20, 3), dtype=np.uint8)
    assert crop_to_bbox(image, (5.0, 5.0, 5.0, 8.0)).shape == image.shape
    assert crop_to_bbox(image, (2.0, 1.0, 6.0, 4.0)).shape == (3, 4, 3)
