"""
Panorama optimizer for plumbline.

The optimizer is a collaborator of the validation stage. Runs are
serialised through a process-wide lock held by the Optimizer class, so any
number of detection threads can share one optimizer.
"""

import math
import threading

import numpy as np
from scipy.optimize import least_squares

from plumbline.geometry.projection import focal_pixels, image_points_to_world, to_lonlat
from plumbline.models import ControlPointMode
from plumbline.tracer import get_tracer, trace


IMAGE_VARIABLES = {"y": "yaw", "p": "pitch", "r": "roll"}


class Optimizer:
    """
    Base class for optimizers.

    Subclasses implement _run(pano), which must adjust image geometry in
    place and store each control point's residual in cp.error.
    """

    lock = threading.Lock()

    def optimize(self, pano):
        """Optimize pano in place while holding the global optimizer lock."""
        with Optimizer.lock:
            self._run(pano)
        return pano

    def _run(self, pano):
        raise NotImplementedError


class PitchRollOptimizer(Optimizer):
    """
    Least-squares optimizer for image orientation.

    Supports the yaw ("y"), pitch ("p") and roll ("r") variables of the
    optimize vector. Residuals are angular errors converted to pixels with
    the focal length of the control point's first image.
    """

    def __init__(self, max_nfev=200):
        self.max_nfev = max_nfev

    @trace(label="optimize")
    def _run(self, pano):
        tracer = get_tracer()

        free = free_variables(pano)
        if free and pano.ctrl_points:
            x0 = np.array([getattr(pano.images[i], IMAGE_VARIABLES[v]) for i, v in free])

            def residuals(params):
                set_variables(pano, free, params)
                return control_point_residuals(pano)

            result = least_squares(residuals, x0, max_nfev=self.max_nfev)
            set_variables(pano, free, result.x)
            tracer.event(
                f"Optimized {len(free)} variables over {len(pano.ctrl_points)} points: "
                f"cost={result.cost:.4g} nfev={result.nfev}"
            )

        for cp, residual in zip(pano.ctrl_points, control_point_residuals(pano)):
            cp.error = abs(float(residual))
        return pano


def free_variables(pano):
    """(image index, variable) pairs the optimizer may change."""
    tracer = get_tracer()

    free = []
    for img_nr, variables in enumerate(pano.optimize_vector):
        for var in sorted(variables):
            if var in IMAGE_VARIABLES:
                free.append((img_nr, var))
            else:
                tracer.event(f"Ignoring unsupported variable {var!r} of image {img_nr}", level="WARN")
    return free


def set_variables(pano, free, params):
    for (img_nr, var), value in zip(free, params):
        setattr(pano.images[img_nr], IMAGE_VARIABLES[var], float(value))


def control_point_residuals(pano):
    """
    Signed residual of every control point, in pixels.

    Vertical line points must share a longitude, horizontal line points a
    latitude and normal points a direction. Straight-line points (mode 3 and
    above) do not constrain orientation and contribute 0.
    """
    residuals = np.zeros(len(pano.ctrl_points))

    for idx, cp in enumerate(pano.ctrl_points):
        img1 = pano.images[cp.image1_nr]
        img2 = pano.images[cp.image2_nr]
        ray1, _ = image_points_to_world(img1, cp.x1, cp.y1)
        ray2, _ = image_points_to_world(img2, cp.x2, cp.y2)
        focal = focal_pixels(img1.projection, img1.hfov, img1.width)

        if cp.mode == ControlPointMode.X:
            lon1, _ = to_lonlat(ray1)
            lon2, _ = to_lonlat(ray2)
            angle = _wrap(float(lon1 - lon2))
        elif cp.mode == ControlPointMode.Y:
            _, lat1 = to_lonlat(ray1)
            _, lat2 = to_lonlat(ray2)
            angle = float(lat1 - lat2)
        elif cp.mode == ControlPointMode.X_Y:
            angle = math.acos(float(np.clip(np.dot(ray1, ray2), -1.0, 1.0)))
        else:
            angle = 0.0

        residuals[idx] = angle * focal

    return residuals


def _wrap(angle):
    """Wrap an angle in radians into [-pi, pi)."""
    return (angle + math.pi) % (2.0 * math.pi) - math.pi
