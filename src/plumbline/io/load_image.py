"""
Image loading utilities for plumbline.

Decodes files into RGB rasters; an alpha channel becomes the opacity mask.
"""

import os

import cv2

from plumbline.tracer import get_tracer, trace


SUPPORTED_EXTENSIONS = (".png", ".jpg", ".jpeg", ".tiff", ".tif", ".bmp")


@trace(label="load_image")
def load_image(path):
    """
    Load an image from disk.

    Returns a tuple of (image, mask) where:
    - image: RGB numpy array (H, W, 3)
    - mask: uint8 (H, W) with 0 for transparent pixels, or None

    Raises FileNotFoundError if path does not exist.
    Raises ValueError if image cannot be loaded.
    """
    tracer = get_tracer()

    if not os.path.exists(path):
        raise FileNotFoundError(f"Image not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ValueError(f"Unsupported image format: {path}")

    raw = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if raw is None:
        raise ValueError(f"Failed to load image: {path}")

    if raw.dtype != "uint8":
        raw = cv2.convertScaleAbs(raw, alpha=255.0 / max(float(raw.max()), 1.0))

    mask = None
    if raw.ndim == 2:
        image = cv2.cvtColor(raw, cv2.COLOR_GRAY2RGB)
    elif raw.shape[2] == 4:
        image = cv2.cvtColor(raw, cv2.COLOR_BGRA2RGB)
        mask = raw[:, :, 3].copy()
    else:
        image = cv2.cvtColor(raw, cv2.COLOR_BGR2RGB)

    height, width = image.shape[:2]
    tracer.event(f"Loaded image: {width}x{height}, mask={'yes' if mask is not None else 'no'}")

    return image, mask
