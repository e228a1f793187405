"""
Pydantic data models for plumbline.

Covers detected lines, control points and the minimal panorama model the
validation stage hands to the optimizer.
"""

import math
from enum import Enum, IntEnum
from typing import List, Set

from pydantic import BaseModel, ConfigDict, Field


class LineStatus(str, Enum):
    """Outcome of tracing a single edge chain."""
    VALID = "valid"
    REJECTED = "rejected"


class ControlPointMode(IntEnum):
    """Control point types, numbered as in panotools."""
    X_Y = 0  # normal point pair
    X = 1  # vertical line
    Y = 2  # horizontal line


class Projection(str, Enum):
    """Lens projections of source images."""
    RECTILINEAR = "rectilinear"
    PANORAMIC = "panoramic"
    CIRCULAR_FISHEYE = "circular_fisheye"
    FULL_FRAME_FISHEYE = "full_frame_fisheye"
    EQUIRECTANGULAR = "equirectangular"
    FISHEYE_ORTHOGRAPHIC = "fisheye_orthographic"
    FISHEYE_STEREOGRAPHIC = "fisheye_stereographic"
    FISHEYE_EQUISOLID = "fisheye_equisolid"


class RawLine(BaseModel):
    """An ordered chain of edge pixels, [x, y] per point."""
    points: List[List[int]] = Field(default_factory=list)
    status: LineStatus = LineStatus.VALID

    model_config = ConfigDict(extra="forbid")


class FittedLine(BaseModel):
    """A straight segment approximating a raw line."""
    start: List[float] = Field(..., min_length=2, max_length=2)
    end: List[float] = Field(..., min_length=2, max_length=2)

    model_config = ConfigDict(extra="forbid")

    @property
    def dx(self):
        return self.end[0] - self.start[0]

    @property
    def dy(self):
        return self.end[1] - self.start[1]

    def length(self):
        return math.hypot(self.dx, self.dy)

    def angle(self):
        return math.atan2(self.dy, self.dx)

    def estimated_distance(self, other, overshoot=0.1):
        """
        Smallest distance from an endpoint of one line to the other line.

        Only footpoints within the parameter range [-overshoot, 1 + overshoot]
        count; if none qualifies the distance is infinite.
        """
        from plumbline.lines.fit import get_footpoint

        def point_distance(p, p1, p2):
            foot, u = get_footpoint(p, p1, p2)
            if -overshoot < u < 1.0 + overshoot:
                return math.hypot(foot[0] - p[0], foot[1] - p[1])
            return math.inf

        return min(
            point_distance(other.start, self.start, self.end),
            point_distance(other.end, self.start, self.end),
            point_distance(self.start, other.start, other.end),
            point_distance(self.end, other.start, other.end),
        )


class ControlPoint(BaseModel):
    """A correspondence between two image points."""
    image1_nr: int = 0
    x1: float = 0.0
    y1: float = 0.0
    image2_nr: int = 0
    x2: float = 0.0
    y2: float = 0.0
    mode: int = ControlPointMode.X_Y
    error: float = 0.0

    model_config = ConfigDict(extra="forbid")

    def length(self):
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)


class SrcImage(BaseModel):
    """Geometry and photometry of one image in a panorama."""
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    projection: Projection = Projection.RECTILINEAR
    hfov: float = Field(default=50.0, gt=0.0)
    yaw: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0
    tr_x: float = 0.0
    tr_y: float = 0.0
    tr_z: float = 0.0
    exposure_value: float = 0.0
    emor_params: List[float] = Field(default_factory=lambda: [0.0] * 5)
    crop_factor: float = Field(default=1.0, gt=0.0)
    exif_focal_length: float = 0.0
    active: bool = True
    has_masks: bool = False

    model_config = ConfigDict(extra="forbid")


class PanoramaOptions(BaseModel):
    """Output settings of a panorama."""
    projection: Projection = Projection.EQUIRECTANGULAR
    width: int = 3000
    height: int = 1500
    hfov: float = 360.0
    output_exposure_value: float = 0.0

    model_config = ConfigDict(extra="forbid")

    @property
    def vfov(self):
        """Vertical field of view of an equirectangular canvas."""
        return self.hfov * self.height / self.width


class Panorama(BaseModel):
    """Images, control points and optimizer setup."""
    images: List[SrcImage] = Field(default_factory=list)
    ctrl_points: List[ControlPoint] = Field(default_factory=list)
    options: PanoramaOptions = Field(default_factory=PanoramaOptions)
    optimize_vector: List[Set[str]] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    def add_image(self, image):
        self.images.append(image)
        self.optimize_vector.append(set())
        return len(self.images) - 1

    def get_image(self, img_nr):
        if not 0 <= img_nr < len(self.images):
            raise ValueError(f"Image index {img_nr} out of range (0..{len(self.images) - 1})")
        return self.images[img_nr]

    def add_ctrl_point(self, cp):
        for nr in (cp.image1_nr, cp.image2_nr):
            self.get_image(nr)
        self.ctrl_points.append(cp)

    def set_optimize_vector(self, optimize_vector):
        if len(optimize_vector) != len(self.images):
            raise ValueError(
                f"Optimize vector has {len(optimize_vector)} entries for {len(self.images)} images"
            )
        self.optimize_vector = [set(v) for v in optimize_vector]


def zeroed_copy(image, keep_roll=False):
    """Copy of an image with orientation and position reset."""
    update = {"yaw": 0.0, "pitch": 0.0, "tr_x": 0.0, "tr_y": 0.0, "tr_z": 0.0}
    if not keep_roll:
        update["roll"] = 0.0
    return image.model_copy(update=update, deep=True)
