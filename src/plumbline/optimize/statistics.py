"""Control point error statistics."""

import numpy as np


def calc_ctrl_pnts_error_stats(pano, img_nr=None):
    """
    Min, max, mean and variance of control point errors.

    Only points touching img_nr are used when it is given. Returns zeros
    when there are no points.
    """
    errors = [
        cp.error for cp in pano.ctrl_points
        if img_nr is None or img_nr in (cp.image1_nr, cp.image2_nr)
    ]
    if not errors:
        return 0.0, 0.0, 0.0, 0.0

    arr = np.asarray(errors, dtype=np.float64)
    return float(arr.min()), float(arr.max()), float(arr.mean()), float(arr.var())
