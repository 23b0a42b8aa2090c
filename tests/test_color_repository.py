import numpy as np
import pytest

from repositories.color_repository import ColorRepository


def test_luma_uses_bt601_weights():
    rgba = np.array([[[255, 0, 0, 255], [0, 255, 0, 255], [0, 0, 255, 255]]], dtype=np.uint8)
    assert ColorRepository.luma(rgba).tolist() == [[76, 150, 29]]


def test_binarize_compares_strictly_below():
    gray = np.array([[9, 10, 11]], dtype=np.uint8)
    out = ColorRepository.binarize(gray, 10)
    assert out.shape == (1, 3, 4)
    assert out[0].tolist() == [[0, 0, 0, 255], [255, 255, 255, 255], [255, 255, 255, 255]]


def test_rgb_to_lab_white_and_black():
    rgb = np.array([[[255, 255, 255], [0, 0, 0]]], dtype=np.uint8)
    lab = ColorRepository.rgb_to_lab(rgb)
    assert lab[0, 0] == pytest.approx([100.0, 0.0, 0.0], abs=0.05)
    assert lab[0, 1] == pytest.approx([0.0, 0.0, 0.0], abs=1e-9)


def test_rgb_to_lab_primary_red():
    lab = ColorRepository.rgb_to_lab(np.array([[[255, 0, 0]]], dtype=np.uint8))
    assert lab[0, 0] == pytest.approx([53.23, 80.11, 67.22], abs=0.1)


def test_encode_lab_scales_and_offsets():
    lab = np.array([[[100.0, 0.0, -128.0], [50.0, 10.4, 10.6]]])
    alpha = np.array([[255, 7]], dtype=np.uint8)
    out = ColorRepository.encode_lab(lab, alpha)
    assert out.dtype == np.uint8
    assert out[0].tolist() == [[255, 128, 0, 255], [128, 138, 139, 7]]


def test_encode_lab_narrows_instead_of_clamping():
    lab = np.array([[[0.0, 130.0, -130.0], [0.0, 127.6, -128.6]]])
    alpha = np.full((1, 2), 255, dtype=np.uint8)
    out = ColorRepository.encode_lab(lab, alpha)
    # 258 → 2, -2 → 254, 256 → 0, -1 → 255
    assert out[0].tolist() == [[0, 2, 254, 255], [0, 0, 255, 255]]


def test_broadcast_channel_keeps_alpha():
    rgba = np.array([[[1, 2, 3, 4]]], dtype=np.uint8)
    assert ColorRepository.broadcast_channel(rgba, 2).tolist() == [[[3, 3, 3, 4]]]
