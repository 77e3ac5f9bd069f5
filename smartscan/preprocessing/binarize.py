"""Photometric cleanup applied after (or instead of) perspective correction.

Every normalized image goes through the same two steps: local contrast
equalization, then an adaptive threshold that leaves ink at 0 and paper
at 255 even under uneven lighting.
"""

import cv2
import numpy as np

from smartscan.utils.config import NormalizerConfig
from smartscan.utils.logger import get_logger

logger = get_logger(__name__)


def to_gray(image: np.ndarray) -> np.ndarray:
    """Collapse BGR, BGRA or single-channel buffers to a 2-D gray image.

    2-D input is returned as is, without a copy.
    """
    if image.ndim == 2:
        return image
    channels = image.shape[2]
    if channels == 1:
        return image[:, :, 0]
    code = cv2.COLOR_BGRA2GRAY if channels == 4 else cv2.COLOR_BGR2GRAY
    return cv2.cvtColor(image, code)


def apply_clahe(image: np.ndarray, clip_limit: float = 2.0, tile_size: int = 8) -> np.ndarray:
    """Equalize contrast per tile, limiting noise amplification.

    Args:
        image: Color or gray image.
        clip_limit: CLAHE clip limit.
        tile_size: Tiles per side of the equalization grid.

    Returns:
        Equalized gray image.
    """
    clahe = cv2.createCLAHE(clipLimit=clip_limit, tileGridSize=(tile_size, tile_size))
    return clahe.apply(to_gray(image))


def binarize_adaptive(image: np.ndarray, block_size: int = 11, c: int = 2) -> np.ndarray:
    """Threshold against a Gaussian-weighted local mean.

    Args:
        image: Color or gray image.
        block_size: Odd neighbourhood size in pixels.
        c: Offset subtracted from the local mean.

    Returns:
        Image holding only 0 and 255.
    """
    return cv2.adaptiveThreshold(
        to_gray(image),
        255,
        cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY,
        block_size,
        c,
    )


def enhance_basic(image: np.ndarray, config: NormalizerConfig) -> np.ndarray:
    """CLAHE followed by adaptive thresholding, using ``config`` constants."""
    equalized = apply_clahe(image, config.clahe_clip_limit, config.clahe_tile_size)
    binary = binarize_adaptive(equalized, config.threshold_block_size, config.threshold_c)
    logger.debug(
        "Enhanced %dx%d image (clip=%.1f, block=%d)",
        binary.shape[1],
        binary.shape[0],
        config.clahe_clip_limit,
        config.threshold_block_size,
    )
    return binary
