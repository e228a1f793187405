"""
Lens projection math for source images and equirectangular panoramas.

Image points are converted to unit rays in the camera frame (x right, y down,
z forward). Rays are rotated into the panorama frame with the image's yaw,
pitch and roll. All functions are vectorised over numpy arrays.
"""

import math

import numpy as np

from plumbline.models import Projection


def image_center(width, height):
    """Pixel coordinate of the optical axis."""
    return (width - 1) / 2.0, (height - 1) / 2.0


def focal_pixels(projection, hfov, width):
    """Focal length in pixels that makes an image of `width` span `hfov` degrees."""
    half_width = width / 2.0
    half_fov = math.radians(hfov) / 2.0

    if projection == Projection.RECTILINEAR:
        return half_width / math.tan(min(half_fov, math.radians(89.9)))
    if projection == Projection.FISHEYE_ORTHOGRAPHIC:
        return half_width / math.sin(min(half_fov, math.pi / 2))
    if projection == Projection.FISHEYE_STEREOGRAPHIC:
        return half_width / (2.0 * math.tan(half_fov / 2.0))
    if projection == Projection.FISHEYE_EQUISOLID:
        return half_width / (2.0 * math.sin(half_fov / 2.0))
    # panoramic, equirectangular, equidistant fisheyes
    return half_width / half_fov


def calc_focal_length(projection, hfov, crop_factor, width, height):
    """
    Physical focal length in mm for a field of view and sensor crop factor.

    The sensor is a 35mm-film diagonal divided by the crop factor, with the
    image's aspect ratio.
    """
    ratio = width / height
    diagonal = math.hypot(36.0, 24.0) / crop_factor
    sensor_width = diagonal / math.sqrt(1.0 + 1.0 / (ratio * ratio))
    half_fov = math.radians(hfov) / 2.0

    if projection == Projection.RECTILINEAR:
        return (sensor_width / 2.0) / math.tan(half_fov)
    if projection == Projection.FISHEYE_ORTHOGRAPHIC:
        return (sensor_width / 2.0) / math.sin(min(half_fov, math.pi / 2))
    if projection == Projection.FISHEYE_STEREOGRAPHIC:
        return (sensor_width / 4.0) / math.tan(half_fov / 2.0)
    if projection == Projection.FISHEYE_EQUISOLID:
        return (sensor_width / 4.0) / math.sin(half_fov / 2.0)
    return sensor_width / (2.0 * half_fov)


def rotation_matrix(yaw, pitch, roll):
    """
    Camera-to-panorama rotation for angles in degrees.

    Positive yaw turns right, positive pitch tilts up, positive roll turns
    the image so that world verticals appear along (-sin roll, cos roll).
    """
    y, p, r = (math.radians(a) for a in (yaw, pitch, roll))

    ry = np.array([
        [math.cos(y), 0.0, math.sin(y)],
        [0.0, 1.0, 0.0],
        [-math.sin(y), 0.0, math.cos(y)],
    ])
    rx = np.array([
        [1.0, 0.0, 0.0],
        [0.0, math.cos(p), -math.sin(p)],
        [0.0, math.sin(p), math.cos(p)],
    ])
    rz = np.array([
        [math.cos(-r), -math.sin(-r), 0.0],
        [math.sin(-r), math.cos(-r), 0.0],
        [0.0, 0.0, 1.0],
    ])
    return ry @ rx @ rz


def image_to_direction(projection, u, v, focal):
    """
    Rays for image offsets (u, v) from the optical axis.

    Returns (rays, valid) with rays of shape (..., 3).
    """
    u = np.asarray(u, dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)
    valid = np.ones(np.broadcast(u, v).shape, dtype=bool)

    if projection == Projection.RECTILINEAR:
        rays = np.stack(np.broadcast_arrays(u, v, np.full_like(u, focal)), axis=-1)
    elif projection == Projection.PANORAMIC:
        lon = u / focal
        rays = np.stack(np.broadcast_arrays(np.sin(lon), v / focal, np.cos(lon)), axis=-1)
    elif projection == Projection.EQUIRECTANGULAR:
        lon = u / focal
        lat = v / focal
        rays = np.stack(np.broadcast_arrays(
            np.cos(lat) * np.sin(lon), np.sin(lat), np.cos(lat) * np.cos(lon)
        ), axis=-1)
        valid &= np.abs(lat) <= math.pi / 2
    else:
        r = np.hypot(u, v)
        if projection == Projection.FISHEYE_ORTHOGRAPHIC:
            valid &= r <= focal
            theta = np.arcsin(np.clip(r / focal, 0.0, 1.0))
        elif projection == Projection.FISHEYE_STEREOGRAPHIC:
            theta = 2.0 * np.arctan(r / (2.0 * focal))
        elif projection == Projection.FISHEYE_EQUISOLID:
            valid &= r <= 2.0 * focal
            theta = 2.0 * np.arcsin(np.clip(r / (2.0 * focal), 0.0, 1.0))
        else:
            theta = r / focal
            valid &= theta < math.pi
        safe_r = np.where(r > 0, r, 1.0)
        s = np.where(r > 0, np.sin(theta) / safe_r, 0.0)
        rays = np.stack(np.broadcast_arrays(s * u, s * v, np.cos(theta)), axis=-1)

    norms = np.linalg.norm(rays, axis=-1, keepdims=True)
    return rays / np.where(norms > 0, norms, 1.0), valid


def direction_to_image(projection, rays, focal):
    """
    Image offsets from the optical axis for camera-frame rays.

    Returns (u, v, valid); invalid entries have no projection and carry
    undefined coordinates.
    """
    rays = np.asarray(rays, dtype=np.float64)
    x, y, z = rays[..., 0], rays[..., 1], rays[..., 2]

    with np.errstate(divide="ignore", invalid="ignore"):
        if projection == Projection.RECTILINEAR:
            valid = z > 1e-9
            safe_z = np.where(valid, z, 1.0)
            return focal * x / safe_z, focal * y / safe_z, valid

        if projection in (Projection.PANORAMIC, Projection.EQUIRECTANGULAR):
            lon = np.arctan2(x, z)
            horizontal = np.hypot(x, z)
            if projection == Projection.PANORAMIC:
                valid = horizontal > 1e-9
                v = focal * y / np.where(valid, horizontal, 1.0)
            else:
                valid = np.ones(x.shape, dtype=bool)
                v = focal * np.arctan2(y, horizontal)
            return focal * lon, v, valid

        theta = np.arccos(np.clip(z, -1.0, 1.0))
        phi = np.arctan2(y, x)
        if projection == Projection.FISHEYE_ORTHOGRAPHIC:
            valid = theta <= math.pi / 2
            r = focal * np.sin(theta)
        elif projection == Projection.FISHEYE_STEREOGRAPHIC:
            valid = theta < math.pi - 1e-6
            r = 2.0 * focal * np.tan(np.where(valid, theta, 0.0) / 2.0)
        elif projection == Projection.FISHEYE_EQUISOLID:
            valid = theta < math.pi
            r = 2.0 * focal * np.sin(theta / 2.0)
        else:
            valid = theta < math.pi
            r = focal * theta
        return r * np.cos(phi), r * np.sin(phi), valid


def to_lonlat(rays):
    """Longitude and latitude (radians) of panorama-frame rays."""
    rays = np.asarray(rays, dtype=np.float64)
    x, y, z = rays[..., 0], rays[..., 1], rays[..., 2]
    return np.arctan2(x, z), np.arctan2(y, np.hypot(x, z))


def from_lonlat(lon, lat):
    """Unit rays for longitude and latitude arrays (radians)."""
    lon = np.asarray(lon, dtype=np.float64)
    lat = np.asarray(lat, dtype=np.float64)
    return np.stack(np.broadcast_arrays(
        np.cos(lat) * np.sin(lon), np.sin(lat), np.cos(lat) * np.cos(lon)
    ), axis=-1)


def image_points_to_world(src_image, xs, ys):
    """
    Panorama-frame rays for pixel coordinates of a source image.

    Returns (rays, valid).
    """
    cx, cy = image_center(src_image.width, src_image.height)
    focal = focal_pixels(src_image.projection, src_image.hfov, src_image.width)
    rays, valid = image_to_direction(
        src_image.projection, np.asarray(xs) - cx, np.asarray(ys) - cy, focal
    )
    rotation = rotation_matrix(src_image.yaw, src_image.pitch, src_image.roll)
    return rays @ rotation.T, valid
