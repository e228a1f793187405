"""
Remapping of non-rectilinear images into an equirectangular working frame.

World verticals become image columns in an equirectangular panorama of an
image with zero yaw and pitch, so lines are searched there and mapped back
to source pixels through PanoTransform.
"""

import math
from dataclasses import dataclass

import cv2
import numpy as np

from plumbline.errors import InverseTransformUnavailable
from plumbline.geometry.projection import (
    direction_to_image,
    focal_pixels,
    from_lonlat,
    image_center,
    image_points_to_world,
    rotation_matrix,
    to_lonlat,
)
from plumbline.models import PanoramaOptions, Projection, zeroed_copy
from plumbline.tracer import get_tracer, trace


class PanoTransform:
    """
    Maps equirectangular panorama pixels to source image pixels.

    This is the direction the remapper samples in, so it doubles as the
    inverse coordinate transform for points found in the remapped image.
    """

    def __init__(self, src_image, options):
        if options.projection != Projection.EQUIRECTANGULAR:
            raise ValueError(f"Unsupported panorama projection: {options.projection.value}")

        self.src_image = src_image
        self.options = options
        self.pano_focal = options.width / math.radians(options.hfov)
        self.pano_center = image_center(options.width, options.height)
        self.src_focal = focal_pixels(src_image.projection, src_image.hfov, src_image.width)
        self.src_center = image_center(src_image.width, src_image.height)
        self.rotation = rotation_matrix(src_image.yaw, src_image.pitch, src_image.roll)

    def map_points(self, xs, ys):
        """Vectorised mapping, returns (src_x, src_y, valid)."""
        lon = (np.asarray(xs, dtype=np.float64) - self.pano_center[0]) / self.pano_focal
        lat = (np.asarray(ys, dtype=np.float64) - self.pano_center[1]) / self.pano_focal
        on_sphere = (np.abs(lon) <= math.pi) & (np.abs(lat) <= math.pi / 2)

        # world -> camera is the transposed rotation, applied to row vectors
        rays = from_lonlat(lon, lat) @ self.rotation
        u, v, valid = direction_to_image(self.src_image.projection, rays, self.src_focal)
        return u + self.src_center[0], v + self.src_center[1], valid & on_sphere

    def transform_img_coord(self, x, y):
        """
        Source image coordinates of a single panorama point.

        Raises InverseTransformUnavailable if the point has no projection
        into the source image.
        """
        src_x, src_y, valid = self.map_points(x, y)
        if not bool(valid) or not (np.isfinite(src_x) and np.isfinite(src_y)):
            raise InverseTransformUnavailable(x, y)
        return float(src_x), float(src_y)

    def map_grid(self):
        """Float32 sampling maps over the whole canvas plus validity mask."""
        ys, xs = np.mgrid[0:self.options.height, 0:self.options.width]
        map_x, map_y, valid = self.map_points(xs, ys)
        map_x = np.where(valid, map_x, -1.0).astype(np.float32)
        map_y = np.where(valid, map_y, -1.0).astype(np.float32)
        return map_x, map_y, valid


@dataclass
class RemapContext:
    """State of one remapping, valid only inside a single detection call."""
    image: np.ndarray
    mask: np.ndarray
    transform: PanoTransform
    options: PanoramaOptions


def calculate_fit_panorama(src_image, width, samples=41):
    """
    Field of view and height of an equirectangular canvas holding the image.

    Samples a grid over the image, maps it into the panorama and takes the
    symmetric extent around the canvas centre. Returns (hfov_deg, height).
    """
    xs = np.linspace(0, src_image.width - 1, samples)
    ys = np.linspace(0, src_image.height - 1, samples)
    grid_x, grid_y = np.meshgrid(xs, ys)

    rays, valid = image_points_to_world(src_image, grid_x, grid_y)
    lon, lat = to_lonlat(rays[valid])
    if lon.size == 0:
        raise ValueError("Image has no valid projection into the panorama")

    hfov = min(360.0, 2.0 * math.degrees(float(np.max(np.abs(lon)))))
    vfov = min(180.0, 2.0 * math.degrees(float(np.max(np.abs(lat)))))
    hfov = max(hfov, 1e-3)
    return hfov, width * vfov / hfov


def prepare_remap_image(src_image):
    """Single-image copy with yaw, pitch, position and photometry reset."""
    image = zeroed_copy(src_image, keep_roll=True)
    image.exposure_value = 0.0
    image.emor_params = [0.0] * 5
    image.has_masks = False
    image.active = True
    return image


@trace(label="remap_to_equirectangular")
def build_remap_context(src_image, image, mask, config):
    """
    Remap a non-rectilinear image into an equirectangular working frame.

    Returns a RemapContext with the remapped raster, a mask of usable
    pixels (0 = ignore) and the transform back to source coordinates.
    """
    tracer = get_tracer()
    remap_cfg = config.remap

    remap_image = prepare_remap_image(src_image)
    options = PanoramaOptions(
        projection=Projection.EQUIRECTANGULAR,
        width=remap_cfg.width,
        output_exposure_value=0.0,
    )

    hfov, height = calculate_fit_panorama(remap_image, options.width, remap_cfg.fit_samples)
    options.hfov = hfov
    options.height = max(1, int(round(height)))
    if options.vfov > remap_cfg.max_vfov:
        # lines near nadir or zenith are unreliable
        options.height = max(1, int(round(options.height * remap_cfg.limited_vfov / options.vfov)))
    tracer.event(
        f"Canvas {options.width}x{options.height} hfov={options.hfov:.1f} vfov={options.vfov:.1f}"
    )

    transform = PanoTransform(remap_image, options)
    map_x, map_y, valid = transform.map_grid()

    src_h, src_w = image.shape[:2]
    inside = valid & (map_x >= 0) & (map_x <= src_w - 1) & (map_y >= 0) & (map_y <= src_h - 1)

    remapped = cv2.remap(image, map_x, map_y, cv2.INTER_CUBIC, borderMode=cv2.BORDER_REPLICATE)

    out_mask = np.where(inside, 255, 0).astype(np.uint8)
    if mask is not None and mask.size > 0:
        remapped_mask = cv2.remap(
            mask, map_x, map_y, cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT, borderValue=0,
        )
        out_mask[remapped_mask < 255] = 0

    if remap_cfg.mask_erode > 0:
        kernel = np.ones((3, 3), dtype=np.uint8)
        # pixels beyond the canvas count as unusable
        out_mask = cv2.erode(
            out_mask, kernel, iterations=remap_cfg.mask_erode,
            borderType=cv2.BORDER_CONSTANT, borderValue=0,
        )

    tracer.event(f"Usable remapped pixels: {np.count_nonzero(out_mask)}")

    return RemapContext(image=remapped, mask=out_mask, transform=transform, options=options)
