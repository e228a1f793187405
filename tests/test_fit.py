"""Tests for line fitting and vertical line filtering."""

import math

import pytest


def _vertical(x, y0, y1):
    from plumbline.models import RawLine
    return RawLine(points=[[x, y] for y in range(y0, y1)])


class TestFootpoint:
    """Tests for get_footpoint."""

    def test_projection_onto_segment(self):
        from plumbline.lines.fit import get_footpoint

        foot, u = get_footpoint((5.0, 5.0), (0.0, 0.0), (10.0, 0.0))

        assert foot == pytest.approx([5.0, 0.0])
        assert u == pytest.approx(0.5)

    def test_parameter_outside_segment(self):
        from plumbline.lines.fit import get_footpoint

        _, u = get_footpoint((-5.0, 3.0), (0.0, 0.0), (10.0, 0.0))
        assert u == pytest.approx(-0.5)


class TestFitLine:
    """Tests for fit_line."""

    def test_exact_vertical(self):
        from plumbline.lines.fit import fit_line

        fitted = fit_line(_vertical(400, 300, 500))

        assert fitted.start == pytest.approx([400.0, 300.0])
        assert fitted.end == pytest.approx([400.0, 499.0])

    def test_sloped_line(self):
        from plumbline.lines.fit import fit_line
        from plumbline.models import RawLine

        line = RawLine(points=[[x, 2 * x + 1] for x in range(50)])
        fitted = fit_line(line)

        assert fitted.start == pytest.approx([0.0, 1.0], abs=1e-6)
        assert fitted.end == pytest.approx([49.0, 99.0], abs=1e-6)

    def test_length_and_angle(self):
        from plumbline.models import FittedLine

        line = FittedLine(start=[0.0, 0.0], end=[3.0, 4.0])

        assert line.length() == pytest.approx(5.0)
        assert line.angle() == pytest.approx(math.atan2(4.0, 3.0))


class TestEstimatedDistance:
    """Tests for FittedLine.estimated_distance."""

    def test_parallel_lines(self):
        from plumbline.models import FittedLine

        a = FittedLine(start=[0.0, 0.0], end=[0.0, 100.0])
        b = FittedLine(start=[10.0, 0.0], end=[10.0, 100.0])

        assert a.estimated_distance(b) == pytest.approx(10.0)

    def test_no_overlap_is_infinite(self):
        from plumbline.models import FittedLine

        a = FittedLine(start=[0.0, 0.0], end=[0.0, 100.0])
        b = FittedLine(start=[0.0, 300.0], end=[0.0, 400.0])

        assert a.estimated_distance(b) == math.inf


class TestFilterLines:
    """Tests for filter_lines."""

    def test_vertical_line_kept(self):
        from plumbline.lines.fit import filter_lines

        result = filter_lines([_vertical(100, 100, 300)], roll=0.0)

        assert len(result) == 1
        assert result[0].start[0] == pytest.approx(100.0)

    def test_rejected_status_skipped(self):
        from plumbline.lines.fit import filter_lines
        from plumbline.models import LineStatus

        line = _vertical(100, 100, 300).model_copy(update={"status": LineStatus.REJECTED})
        assert filter_lines([line], roll=0.0) == []

    def test_short_line_dropped(self):
        from plumbline.lines.fit import filter_lines

        assert filter_lines([_vertical(100, 100, 115)], roll=0.0) == []

    def test_horizontal_line_dropped(self):
        from plumbline.lines.fit import filter_lines
        from plumbline.models import RawLine

        line = RawLine(points=[[x, 50] for x in range(100, 300)])
        assert filter_lines([line], roll=0.0) == []

    def test_roll_changes_vertical(self):
        """Test that a line tilted by the image roll counts as vertical."""
        from plumbline.lines.fit import filter_lines
        from plumbline.models import RawLine

        r = math.radians(10.0)
        line = RawLine(points=[
            [int(round(300 - t * math.sin(r))), int(round(100 + t * math.cos(r)))]
            for t in range(300)
        ])

        assert len(filter_lines([line], roll=10.0)) == 1
        assert filter_lines([line], roll=0.0) == []

    @pytest.mark.parametrize("order", [(0, 1), (1, 0)])
    def test_duplicates_keep_longer(self, order):
        from plumbline.lines.fit import filter_lines

        lines = [_vertical(100, 100, 300), _vertical(130, 100, 400)]
        result = filter_lines([lines[i] for i in order], roll=0.0)

        assert len(result) == 1
        assert result[0].start[0] == pytest.approx(130.0)

    def test_distant_lines_kept(self):
        from plumbline.lines.fit import filter_lines

        result = filter_lines([_vertical(100, 100, 300), _vertical(400, 100, 300)], roll=0.0)
        assert len(result) == 2

    def test_collinear_without_overlap_kept(self):
        from plumbline.lines.fit import filter_lines

        result = filter_lines([_vertical(100, 100, 300), _vertical(100, 600, 800)], roll=0.0)
        assert len(result) == 2

    def test_every_kept_line_is_long_and_vertical(self):
        from plumbline.lines.fit import filter_lines, vertical_deviation
        from plumbline.models import RawLine

        lines = [
            _vertical(50, 0, 400),
            RawLine(points=[[x, x // 4] for x in range(200, 400)]),
            RawLine(points=[[600 + y // 20, y] for y in range(0, 300)]),
            _vertical(900, 10, 25),
        ]
        for fitted in filter_lines(lines, roll=0.0):
            assert fitted.length() > 20
            assert vertical_deviation(fitted.dx, fitted.dy, 0.0) < 0.1
