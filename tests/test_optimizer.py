"""Tests for the panorama optimizer and error statistics."""

import threading
import time

import pytest


class TestPitchRollOptimizer:
    """Tests for PitchRollOptimizer."""

    def test_recovers_roll(self, rectilinear_pano, make_vertical_cps):
        """Test that lines tilted by a known roll are explained by that roll."""
        from plumbline.optimize.optimizer import PitchRollOptimizer

        for cp in make_vertical_cps([200.0, 500.0, 800.0], roll=5.0):
            rectilinear_pano.add_ctrl_point(cp)
        rectilinear_pano.set_optimize_vector([{"p", "r"}])

        PitchRollOptimizer().optimize(rectilinear_pano)

        assert rectilinear_pano.images[0].roll == pytest.approx(5.0, abs=0.1)
        assert rectilinear_pano.images[0].pitch == pytest.approx(0.0, abs=0.1)
        assert all(cp.error < 0.5 for cp in rectilinear_pano.ctrl_points)

    def test_fixed_variables_untouched(self, rectilinear_pano, make_vertical_cps):
        from plumbline.optimize.optimizer import PitchRollOptimizer

        for cp in make_vertical_cps([200.0, 800.0], roll=5.0):
            rectilinear_pano.add_ctrl_point(cp)

        PitchRollOptimizer().optimize(rectilinear_pano)

        assert rectilinear_pano.images[0].roll == 0.0
        # errors still reported
        assert all(cp.error > 1.0 for cp in rectilinear_pano.ctrl_points)

    def test_unsupported_variable_ignored(self, rectilinear_pano):
        from plumbline.optimize.optimizer import free_variables

        rectilinear_pano.set_optimize_vector([{"p", "v"}])
        assert free_variables(rectilinear_pano) == [(0, "p")]


class TestResiduals:
    """Tests for control_point_residuals."""

    def test_modes(self, rectilinear_pano):
        from plumbline.models import ControlPoint, ControlPointMode
        from plumbline.optimize.optimizer import control_point_residuals

        rectilinear_pano.ctrl_points = [
            ControlPoint(x1=100.0, y1=100.0, x2=100.0, y2=900.0, mode=ControlPointMode.X),
            ControlPoint(x1=100.0, y1=100.0, x2=899.0, y2=100.0, mode=ControlPointMode.Y),
            ControlPoint(x1=300.0, y1=300.0, x2=300.0, y2=300.0, mode=ControlPointMode.X_Y),
            ControlPoint(x1=100.0, y1=100.0, x2=600.0, y2=900.0, mode=3),
            ControlPoint(x1=100.0, y1=100.0, x2=200.0, y2=100.0, mode=ControlPointMode.X),
        ]

        residuals = control_point_residuals(rectilinear_pano)

        assert list(residuals[:4]) == pytest.approx([0.0, 0.0, 0.0, 0.0], abs=1e-3)
        assert abs(residuals[4]) > 50.0


class TestOptimizerLock:
    """Tests for serialised optimizer runs."""

    def test_runs_never_overlap(self, rectilinear_pano):
        from plumbline.optimize.optimizer import Optimizer

        class SlowOptimizer(Optimizer):
            def __init__(self):
                self.active = 0
                self.max_active = 0
                self.counter_lock = threading.Lock()

            def _run(self, pano):
                with self.counter_lock:
                    self.active += 1
                    self.max_active = max(self.max_active, self.active)
                time.sleep(0.02)
                with self.counter_lock:
                    self.active -= 1

        optimizer = SlowOptimizer()
        threads = [
            threading.Thread(target=optimizer.optimize, args=(rectilinear_pano,))
            for _ in range(4)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert optimizer.max_active == 1

    def test_base_class_has_no_run(self, rectilinear_pano):
        from plumbline.optimize.optimizer import Optimizer

        with pytest.raises(NotImplementedError):
            Optimizer().optimize(rectilinear_pano)


class TestErrorStats:
    """Tests for calc_ctrl_pnts_error_stats."""

    def test_stats(self, rectilinear_pano):
        from plumbline.models import ControlPoint
        from plumbline.optimize.statistics import calc_ctrl_pnts_error_stats

        rectilinear_pano.ctrl_points = [ControlPoint(error=e) for e in (1.0, 2.0, 3.0)]

        min_error, max_error, mean, var = calc_ctrl_pnts_error_stats(rectilinear_pano)

        assert (min_error, max_error, mean) == pytest.approx((1.0, 3.0, 2.0))
        assert var == pytest.approx(2.0 / 3.0)

    def test_filtered_by_image(self, rectilinear_pano):
        from plumbline.models import ControlPoint
        from plumbline.optimize.statistics import calc_ctrl_pnts_error_stats

        rectilinear_pano.ctrl_points = [
            ControlPoint(image1_nr=0, image2_nr=0, error=1.0),
            ControlPoint(image1_nr=1, image2_nr=1, error=5.0),
        ]

        assert calc_ctrl_pnts_error_stats(rectilinear_pano, img_nr=1) == pytest.approx((5.0, 5.0, 5.0, 0.0))

    def test_empty(self, rectilinear_pano):
        from plumbline.optimize.statistics import calc_ctrl_pnts_error_stats

        assert calc_ctrl_pnts_error_stats(rectilinear_pano) == (0.0, 0.0, 0.0, 0.0)
