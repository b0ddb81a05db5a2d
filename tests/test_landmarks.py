from types import SimpleNamespace

import numpy as np

from facehud.detectors.landmarks_mesh import landmarks_from_result


def _lm(x, y, z=0.0):
    return SimpleNamespace(x=x, y=y, z=z)


def test_first_face_landmarks_are_returned_as_xy():
    result = SimpleNamespace(
        face_landmarks=[
            [_lm(0.3, 0.2, -0.1), _lm(0.5, 0.4)],
            [_lm(0.9, 0.9), _lm(0.95, 0.95)],
        ]
    )
    points = landmarks_from_result(result)
    assert points.shape == (2, 2)
    np.testing.assert_allclose(points, [[0.3, 0.2], [0.5, 0.4]], rtol=1e-6)


def test_no_faces_means_no_landmarks():
    assert landmarks_from_result(SimpleNamespace(face_landmarks=[])) is None
    assert landmarks_from_result(SimpleNamespace(face_landmarks=[[]])) is None
    assert landmarks_from_result(None) is None
