# repositories/color_repository.py
import cv2
import numpy as np

# ─── CIE constants (sRGB, D65) ────────────────────────────────────
RGB_TO_XYZ = np.array(
    [[0.4124, 0.3576, 0.1805],
     [0.2126, 0.7152, 0.0722],
     [0.0193, 0.1192, 0.9505]],
    dtype=np.float64,
)
XYZ_WHITE_REFERENCE = np.array([95.047, 100.0, 108.883], dtype=np.float64)
XYZ_EPSILON = 0.008856
XYZ_KAPPA = 903.3

BLACK = (0, 0, 0, 255)
WHITE = (255, 255, 255, 255)


class ColorRepository:
    """
    Stateless per-pixel math on (H, W, 4) uint8 RGBA arrays.

    • Luma via OpenCV (BT.601 fixed point).
    • L*a*b* via explicit NumPy colour-science formulas.
    Never mutates its inputs.
    """

    # ---------- intensity ----------
    @staticmethod
    def luma(rgba: np.ndarray) -> np.ndarray:
        """
        Returns uint8 (H, W) luma, 0.299 R + 0.587 G + 0.114 B.
        Grey input (R == G == B) maps to itself.
        BT.601 on purpose: the Android saturation-zero matrix (0.213, 0.715,
        0.072) is not reproduced pixel for pixel.
        """
        return cv2.cvtColor(np.ascontiguousarray(rgba), cv2.COLOR_RGBA2GRAY)

    @staticmethod
    def gray_to_rgba(gray: np.ndarray, alpha: np.ndarray) -> np.ndarray:
        return np.dstack((gray, gray, gray, alpha)).astype(np.uint8)

    @staticmethod
    def binarize(gray: np.ndarray, threshold: int) -> np.ndarray:
        """
        gray < threshold → opaque black, otherwise opaque white.
        """
        below = gray.astype(np.int64) < threshold
        return np.where(below[..., None],
                        np.array(BLACK, dtype=np.uint8),
                        np.array(WHITE, dtype=np.uint8))

    # ---------- L*a*b* ----------
    @staticmethod
    def _linearize(rgb: np.ndarray) -> np.ndarray:
        c = rgb.astype(np.float64) / 255.0
        return np.where(c < 0.04045, c / 12.92, ((c + 0.055) / 1.055) ** 2.4)

    @staticmethod
    def _pivot(component: np.ndarray) -> np.ndarray:
        return np.where(component > XYZ_EPSILON,
                        np.cbrt(component),
                        (XYZ_KAPPA * component + 16.0) / 116.0)

    @classmethod
    def rgb_to_xyz(cls, rgb: np.ndarray) -> np.ndarray:
        """(H, W, 3) uint8 sRGB → (H, W, 3) float64 XYZ on a 0-100 scale."""
        return cls._linearize(rgb) @ RGB_TO_XYZ.T * 100.0

    @classmethod
    def rgb_to_lab(cls, rgb: np.ndarray) -> np.ndarray:
        """
        Args
        ----
        rgb : np.ndarray  (H, W, 3)  uint8  RGB order

        Returns
        -------
        lab : np.ndarray  (H, W, 3)  float64  L in [0, 100], a/b roughly [-128, 127]
        """
        f = cls._pivot(cls.rgb_to_xyz(rgb) / XYZ_WHITE_REFERENCE)
        fx, fy, fz = f[..., 0], f[..., 1], f[..., 2]

        lightness = np.maximum(0.0, 116.0 * fy - 16.0)
        a = 500.0 * (fx - fy)
        b = 200.0 * (fy - fz)
        return np.stack((lightness, a, b), axis=-1)

    @staticmethod
    def encode_lab(lab: np.ndarray, alpha: np.ndarray) -> np.ndarray:
        """
        L → round(L * 255 / 100), a/b → round(v + 128).
        Values are narrowed into 8 bits (mod 256); nothing is clamped.
        """
        encoded = np.empty(lab.shape, dtype=np.float64)
        encoded[..., 0] = lab[..., 0] * 255.0 / 100.0
        encoded[..., 1:] = lab[..., 1:] + 128.0

        narrowed = np.rint(encoded).astype(np.int64) & 0xFF
        return np.dstack((narrowed.astype(np.uint8), alpha))

    # ---------- channel extraction ----------
    @staticmethod
    def broadcast_channel(rgba: np.ndarray, index: int) -> np.ndarray:
        """Copy channel *index* into all three colour channels, alpha untouched."""
        channel = rgba[..., index]
        return np.dstack((channel, channel, channel, rgba[..., 3])).astype(np.uint8)
