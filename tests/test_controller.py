"""
Step controller: rejection on inverted elements, dt growth and shrink,
end-time clamping and the plastic return hook.
"""

import numpy as np
import pytest

from conftest import make_operator
from lagrange_hydro.controller import StepController
from lagrange_hydro.ode import RK2AvgSolver


def _collapsing_corner():
    """One bilinear element, cold gas, corner (1, 1) driven towards the origin."""
    op = make_operator((1.0, 1.0), (1, 1), order_v=1, order_e=0, use_viscosity=False)
    S = op.new_state()
    X = op.h1.node_coords()
    corner = int(np.flatnonzero((X[:, 0] == 1.0) & (X[:, 1] == 1.0))[0])
    n = op.h1.ndofs
    S.v[corner] = -10.0
    S.v[n + corner] = -10.0
    return op, S


def _controller(op, t_final=1.0, **kwargs):
    return StepController(op, RK2AvgSolver(), t_final, **kwargs)


def test_inverted_step_is_rejected_and_halved():
    op, S = _collapsing_corner()
    ctrl = _controller(op)
    before = S.data.copy()
    res = ctrl.attempt(S, 0.0, 0.2)
    assert not res.accepted
    assert res.dt_est == 0.0
    assert res.dt_next == pytest.approx(0.1)
    assert res.t == 0.0
    np.testing.assert_array_equal(S.data, before)
    assert not op.qdata.is_valid


def test_small_enough_step_is_accepted():
    op, S = _collapsing_corner()
    ctrl = _controller(op)
    res = ctrl.attempt(S, 0.0, 0.05)
    assert res.accepted
    assert res.t == pytest.approx(0.05)
    # cold gas without viscosity imposes no bound, so dt grows
    assert res.dt_est == np.inf
    assert res.dt_next == pytest.approx(0.05 * 1.02)


def test_halving_retries_until_step_fits():
    op, S = _collapsing_corner()
    ctrl = _controller(op)
    dt = 0.2
    rejected = 0
    while True:
        res = ctrl.attempt(S, 0.0, dt)
        if res.accepted:
            break
        rejected += 1
        dt = res.dt_next
    assert rejected == 2
    assert res.dt == pytest.approx(0.05)


def test_smaller_step_never_lowers_estimate():
    alpha = 10.0
    results = {}
    for dt in (0.15, 0.075):
        op = make_operator((1.0, 1.0), (1, 1), order_v=1, order_e=0, use_viscosity=False)
        S = op.new_state()
        n = op.h1.ndofs
        S.v[:n] = -alpha * op.h1.node_coords()[:, 0]
        ode = RK2AvgSolver()
        ode.init(op)
        op.reset_time_step_estimate()
        ode.step(S, 0.0, dt)
        results[dt] = op.compute_time_step_estimate(S)
    assert results[0.15] == 0.0
    assert results[0.075] > 0.0
    assert results[0.075] >= results[0.15]


def test_collapse_below_dt_min_raises():
    op, S = _collapsing_corner()
    ctrl = _controller(op, dt_min=0.15)
    with pytest.raises(RuntimeError, match="min_dt"):
        ctrl.attempt(S, 0.0, 0.2)


def test_non_finite_state_is_rejected():
    op = make_operator((1.0, 1.0), (1, 1), order_v=1, order_e=0, use_viscosity=False)
    S = op.new_state()
    S.e[:] = 1.0
    S.e[0] = np.nan
    res = _controller(op).attempt(S, 0.0, 1e-3)
    assert not res.accepted


def test_nan_estimate_is_rejected_and_state_restored(monkeypatch):
    op = make_operator((1.0, 1.0), (1, 1), order_v=1, order_e=0, use_viscosity=False)
    S = op.new_state()
    S.e[:] = 1.0
    before = S.data.copy()
    ctrl = _controller(op)
    monkeypatch.setattr(op, "compute_time_step_estimate", lambda state: float("nan"))
    res = ctrl.attempt(S, 0.0, 1e-3)
    assert not res.accepted
    assert res.dt_next == pytest.approx(0.5e-3)
    np.testing.assert_array_equal(S.data, before)


def test_run_clamps_last_step_to_final_time():
    op = make_operator((1.0, 1.0), (1, 1), order_v=1, order_e=0, use_viscosity=False)
    S = op.new_state()
    ctrl = _controller(op, t_final=1.0)
    result = ctrl.run(S, dt=0.3)
    assert result.t == 1.0
    assert result.steps == 4
    assert result.rejected == 0
    recs = result.history.records
    assert len(recs) == 5
    assert recs[-1].t == 1.0
    assert recs[-1].dt == pytest.approx(1.0 - recs[-2].t)
    assert recs[1].dt == pytest.approx(0.3)
    assert recs[2].dt == pytest.approx(0.306)


def test_run_stops_at_max_steps():
    op = make_operator((1.0, 1.0), (1, 1), order_v=1, order_e=0, use_viscosity=False)
    S = op.new_state()
    result = _controller(op, t_final=10.0, max_steps=3).run(S, dt=0.1)
    assert result.steps == 3
    assert result.t < 10.0


def test_verbose_run_prints_step_lines(capsys):
    op = make_operator((1.0, 1.0), (1, 1), order_v=1, order_e=0, use_viscosity=False)
    S = op.new_state()
    S.e[:] = 1.0
    ctrl = _controller(op, t_final=1e-3, verbose=True)
    result = ctrl.run(S)
    out = capsys.readouterr().out
    assert out.count("[step]") == result.steps
    assert "|E|=" in out


def test_initial_dt_is_stable_estimate():
    op = make_operator((1.0, 1.0), (2, 2), use_viscosity=False)
    S = op.new_state()
    S.e[:] = 1.0
    ctrl = _controller(op)
    dt0 = ctrl.initial_dt(S)
    assert np.isfinite(dt0) and dt0 > 0.0
    op.reset_quadrature_data()
    op.reset_time_step_estimate()
    assert op.compute_time_step_estimate(S) == dt0


class _CountingReturnMap:
    def __init__(self):
        self.calls = 0

    def return_map(self, stress, plastic_strain, materials, dt):
        self.calls += 1
        return 0.5 * stress, plastic_strain + dt


def test_return_map_applied_once_per_attempt():
    op = make_operator((1.0, 1.0), (1, 1), order_v=1, order_e=0, use_viscosity=False, use_stress=True)
    S = op.new_state()
    S.sigma[:] = -2.0
    rmap = _CountingReturnMap()
    ctrl = _controller(op, plasticity=rmap)
    res = ctrl.attempt(S, 0.0, 0.1)
    assert res.accepted
    assert rmap.calls == 1
    np.testing.assert_allclose(S.sigma, -1.0)
    np.testing.assert_allclose(ctrl.plastic_strain, 0.1)


def test_rejection_restores_plastic_strain():
    op, S = _collapsing_corner()
    rmap = _CountingReturnMap()
    ctrl = _controller(op, plasticity=rmap)
    res = ctrl.attempt(S, 0.0, 0.2)
    assert not res.accepted
    assert rmap.calls == 1
    np.testing.assert_array_equal(ctrl.plastic_strain, 0.0)


def test_controller_validates_factors():
    op = make_operator()
    with pytest.raises(ValueError):
        _controller(op, shrink=1.5)
    with pytest.raises(ValueError):
        _controller(op, grow=0.5)
