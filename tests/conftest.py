"""Pytest fixtures for plumbline tests."""

import tempfile

import cv2
import numpy as np
import pytest


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def single_edge_image():
    """1000x1000 image with one isolated 200 px vertical edge at x=500."""
    img = np.full((1000, 1000, 3), 220, dtype=np.uint8)
    # dark block reaching the left border, its right side is the edge
    cv2.rectangle(img, (0, 400), (499, 599), (30, 30, 30), -1)
    return img


@pytest.fixture
def two_edge_image():
    """800x800 image with a dark block whose left and right sides lean about 1 degree off vertical."""
    img = np.full((800, 800, 3), 210, dtype=np.uint8)
    corners = np.array([[259, 150], [558, 150], [549, 649], [250, 649]], dtype=np.int32)
    cv2.fillPoly(img, [corners], (40, 40, 40))
    return img


@pytest.fixture
def building_image():
    """600x900 grayscale facade: dark pillars of different heights, all leaning 1.5 degrees."""
    img = np.full((600, 900), 200, dtype=np.uint8)
    lean = np.tan(np.radians(1.5))
    for x, top, bottom in [(100, 80, 560), (330, 150, 500), (560, 60, 580), (780, 200, 420)]:
        shift = int(round((bottom - top) * lean))
        corners = np.array([[x + shift, top], [x + 40 + shift, top], [x + 40, bottom], [x, bottom]], dtype=np.int32)
        cv2.fillPoly(img, [corners], 50)
    return img


@pytest.fixture
def line_edge_mask():
    """Edge mask (0 = edge) with a 1 px vertical line of 200 px."""
    edge = np.full((1000, 1000), 255, dtype=np.uint8)
    edge[300:500, 400] = 0
    return edge


@pytest.fixture
def default_config():
    """Create default pipeline configuration."""
    from plumbline.config import PipelineConfig
    return PipelineConfig()


@pytest.fixture
def rectilinear_pano():
    """Panorama with one rectilinear 1000x1000 image."""
    from plumbline.models import Panorama, SrcImage
    pano = Panorama()
    pano.add_image(SrcImage(width=1000, height=1000, hfov=60.0))
    return pano


@pytest.fixture
def make_vertical_cps():
    """Factory for control points along the image vertical at a roll in degrees."""
    from plumbline.models import ControlPoint, ControlPointMode

    def make(xs, y0=200.0, length=300.0, roll=0.0, img_nr=0):
        r = np.radians(roll)
        return [
            ControlPoint(
                image1_nr=img_nr, x1=float(x), y1=y0,
                image2_nr=img_nr, x2=float(x - length * np.sin(r)), y2=float(y0 + length * np.cos(r)),
                mode=ControlPointMode.X,
            )
            for x in xs
        ]

    return make
