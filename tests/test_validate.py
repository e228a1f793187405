"""Tests for the statistical validation of vertical control points."""

import pytest


@pytest.fixture
def src_image():
    from plumbline.models import SrcImage
    return SrcImage(width=1000, height=1000, hfov=60.0)


@pytest.fixture
def fixed_error_optimizer():
    """Factory for an optimizer that assigns preset errors in candidate order."""
    from plumbline.optimize.optimizer import Optimizer

    class FixedErrorOptimizer(Optimizer):
        def __init__(self, errors):
            self.errors = errors

        def _run(self, pano):
            for cp, error in zip(pano.ctrl_points, self.errors):
                cp.error = error

    return FixedErrorOptimizer


class TestSmallInputs:
    """Tests for zero and one candidate."""

    def test_no_candidates(self, src_image):
        from plumbline.optimize.validate import validate_vertical_lines

        assert validate_vertical_lines(src_image, 0, [], 5, 0.0) == []

    def test_single_vertical_accepted(self, src_image, make_vertical_cps):
        from plumbline.optimize.validate import validate_vertical_lines

        candidate = make_vertical_cps([500.0])[0].model_copy(update={"error": 7.0})
        result = validate_vertical_lines(src_image, 3, [candidate], 5, 0.0)

        assert len(result) == 1
        assert result[0].error == 0.0
        assert result[0].image1_nr == result[0].image2_nr == 3
        assert result[0].x1 == candidate.x1

    def test_single_tilted_rejected(self, src_image, make_vertical_cps):
        from plumbline.optimize.validate import validate_vertical_lines

        # sin(5 deg) is above the single line tolerance
        candidates = make_vertical_cps([500.0], roll=5.0)
        assert validate_vertical_lines(src_image, 0, candidates, 5, 0.0) == []

    def test_single_tilted_matches_roll(self, src_image, make_vertical_cps):
        from plumbline.optimize.validate import validate_vertical_lines

        candidates = make_vertical_cps([500.0], roll=5.0)
        assert len(validate_vertical_lines(src_image, 0, candidates, 5, 5.0)) == 1


class TestRanking:
    """Tests for outlier removal and merit ranking."""

    def test_outlier_removed_and_ranked_by_error(self, src_image, make_vertical_cps, fixed_error_optimizer):
        from plumbline.optimize.validate import validate_vertical_lines

        candidates = make_vertical_cps([100.0, 200.0, 300.0, 400.0])
        optimizer = fixed_error_optimizer([4.0, 1.0, 2.0, 3.0])

        result = validate_vertical_lines(src_image, 0, candidates, 5, 0.0, optimizer=optimizer)

        # cutoff is mean + std = 2.5 + 1.118
        assert [cp.x1 for cp in result] == [200.0, 300.0, 400.0]
        assert all(cp.error == 0.0 for cp in result)

    def test_keeps_at_most_nr_lines(self, src_image, make_vertical_cps, fixed_error_optimizer):
        from plumbline.optimize.validate import validate_vertical_lines

        candidates = make_vertical_cps([100.0, 200.0, 300.0, 400.0])
        optimizer = fixed_error_optimizer([4.0, 1.0, 2.0, 3.0])

        result = validate_vertical_lines(src_image, 0, candidates, 2, 0.0, optimizer=optimizer)

        assert [cp.x1 for cp in result] == [200.0, 300.0]

    def test_two_candidates_both_kept(self, src_image, make_vertical_cps, fixed_error_optimizer):
        from plumbline.optimize.validate import validate_vertical_lines

        candidates = make_vertical_cps([100.0, 200.0])
        optimizer = fixed_error_optimizer([0.1, 0.7])

        result = validate_vertical_lines(src_image, 0, candidates, 5, 0.0, optimizer=optimizer)

        # the larger error sits exactly on the cutoff
        assert [cp.x1 for cp in result] == [100.0, 200.0]

    def test_zero_errors_give_nothing(self, src_image, make_vertical_cps, fixed_error_optimizer):
        from plumbline.optimize.validate import validate_vertical_lines

        candidates = (
            make_vertical_cps([100.0], length=100.0)
            + make_vertical_cps([200.0], length=400.0)
            + make_vertical_cps([300.0], length=250.0)
        )
        optimizer = fixed_error_optimizer([0.0, 0.0, 0.0])

        result = validate_vertical_lines(src_image, 0, candidates, 5, 0.0, optimizer=optimizer)

        assert result == []

    def test_equal_errors_rank_by_length(self, src_image, make_vertical_cps, fixed_error_optimizer):
        from plumbline.optimize.validate import validate_vertical_lines

        candidates = (
            make_vertical_cps([100.0], length=100.0)
            + make_vertical_cps([200.0], length=400.0)
            + make_vertical_cps([300.0], length=250.0)
        )
        optimizer = fixed_error_optimizer([1.0, 1.0, 1.0])

        result = validate_vertical_lines(src_image, 0, candidates, 5, 0.0, optimizer=optimizer)

        assert [cp.x1 for cp in result] == [200.0, 300.0, 100.0]

    def test_long_lines_capped(self):
        from plumbline.models import ControlPoint
        from plumbline.optimize.validate import merit_score

        short = ControlPoint(x1=0.0, y1=0.0, x2=0.0, y2=250.0, error=1.0)
        long = ControlPoint(x1=0.0, y1=0.0, x2=0.0, y2=900.0, error=1.0)

        assert merit_score(short, 2.0, 500.0) == pytest.approx(1.0)
        assert merit_score(long, 2.0, 500.0) == pytest.approx(0.5)

    def test_tilted_outlier_rejected(self, src_image, make_vertical_cps):
        """Test that the real optimizer singles out a line that disagrees with the rest."""
        from plumbline.optimize.validate import validate_vertical_lines

        candidates = make_vertical_cps([100.0, 300.0, 700.0, 900.0]) + make_vertical_cps([500.0], roll=8.0)

        result = validate_vertical_lines(src_image, 0, candidates, 5, 0.0)

        assert 1 <= len(result) <= 4
        assert all(cp.x1 != 500.0 for cp in result)

    def test_candidates_not_modified(self, src_image, make_vertical_cps, fixed_error_optimizer):
        from plumbline.optimize.validate import validate_vertical_lines

        candidates = make_vertical_cps([100.0, 200.0], img_nr=2)
        validate_vertical_lines(src_image, 2, candidates, 5, 0.0, optimizer=fixed_error_optimizer([1.0, 2.0]))

        assert all(cp.error == 0.0 and cp.image1_nr == 2 for cp in candidates)


class TestCheckPanorama:
    """Tests for build_check_panorama."""

    def test_orientation_reset(self, make_vertical_cps):
        from plumbline.models import SrcImage
        from plumbline.optimize.validate import build_check_panorama

        image = SrcImage(width=1000, height=1000, yaw=20.0, pitch=3.0, roll=10.0, tr_x=1.0)
        pano = build_check_panorama(image, make_vertical_cps([100.0, 200.0], img_nr=4))

        checked = pano.images[0]
        assert (checked.yaw, checked.pitch, checked.roll, checked.tr_x) == (0.0, 0.0, 0.0, 0.0)
        assert all(cp.image1_nr == cp.image2_nr == 0 for cp in pano.ctrl_points)
        assert pano.optimize_vector == [{"p", "r"}]
        assert image.roll == 10.0
