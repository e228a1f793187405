"""
Resizing and Canny edge detection for plumbline.

Produces the binary edge mask (0 = edge, 255 = background) that line
extraction works on, together with the factor mapping working coordinates
back to the original resolution.
"""

import cv2
import numpy as np

from plumbline.tracer import get_tracer, trace


def to_grayscale(image):
    """Return a single-channel uint8 view of an RGB or grayscale raster."""
    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
    if image.ndim == 3 and image.shape[2] == 1:
        return image[:, :, 0]
    raise ValueError(f"Unsupported image shape: {image.shape}")


def resize_image(image, resize_dimension):
    """
    Downsample so that neither side exceeds resize_dimension.

    Returns (working_image, size_factor) where size_factor is
    original / working. Images that already fit are copied unchanged.
    """
    height, width = image.shape[:2]
    if width <= resize_dimension and height <= resize_dimension:
        return image.copy(), 1.0

    if width >= height:
        factor = resize_dimension / width
        new_width = resize_dimension
        new_height = int(0.5 + factor * height)
    else:
        factor = resize_dimension / height
        new_width = int(0.5 + factor * width)
        new_height = resize_dimension

    resized = cv2.resize(image, (max(new_width, 1), max(new_height, 1)), interpolation=cv2.INTER_AREA)
    return resized, 1.0 / factor


@trace(label="detect_edges")
def detect_edges(image, scale=2.0, threshold=4.0, resize_dimension=1600, gradient_gain=8.0):
    """
    Canny edge mask of an RGB or grayscale raster.

    The image is resized first; smoothing uses a gaussian of sigma `scale`
    and edges need a gradient of at least `threshold` grey values per pixel.

    Returns (edge_mask, size_factor).
    """
    tracer = get_tracer()

    gray = to_grayscale(image)
    scaled, size_factor = resize_image(gray, resize_dimension)

    smoothed = cv2.GaussianBlur(scaled, (0, 0), sigmaX=scale, sigmaY=scale)
    limit = threshold * gradient_gain
    canny = cv2.Canny(smoothed, limit, limit, L2gradient=True)

    edge = np.full(scaled.shape, 255, dtype=np.uint8)
    edge[canny > 0] = 0

    tracer.event(
        f"Edges: size={scaled.shape[1]}x{scaled.shape[0]} factor={size_factor:.3f} "
        f"edge_pixels={int(np.count_nonzero(canny))}"
    )
    return edge, size_factor


def apply_mask(edge, mask):
    """
    Clear edges wherever the opacity mask is not fully opaque (below 255).

    The mask is resized to the edge mask with nearest-neighbour sampling when
    detection ran at a reduced resolution.
    """
    if mask is None or mask.size == 0:
        return edge

    if mask.shape[:2] != edge.shape[:2]:
        mask = cv2.resize(mask, (edge.shape[1], edge.shape[0]), interpolation=cv2.INTER_NEAREST)

    masked = edge.copy()
    masked[mask < 255] = 255
    return masked
