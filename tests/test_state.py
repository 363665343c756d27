"""State layout, energy ledger and small services."""

import numpy as np
import pytest

from lagrange_hydro.output.energy import EnergyHistory, EnergyRecord
from lagrange_hydro.plasticity import NoPlasticity, initial_plastic_strain
from lagrange_hydro.problems import blast_energy, gravity_source, lithostatic_stress, project_l2
from lagrange_hydro.fem.mesh import structured_mesh
from lagrange_hydro.fem.spaces import L2Space
from lagrange_hydro.reduction import SerialReduction
from lagrange_hydro.state import BlockLayout, HydroState, voigt_index
from lagrange_hydro.timer import StopWatch, TimingData


@pytest.mark.parametrize("dim,nsym", [(1, 1), (2, 3), (3, 6)])
def test_block_layout_sizes(dim, nsym):
    lay = BlockLayout(dim, nh1=9, nl2=4)
    assert lay.nsym == nsym
    assert lay.size == 3 * dim * 9 + 4 + nsym * 4
    o = lay.offsets
    assert o[1] - o[0] == dim * 9
    assert o[3] - o[2] == 4


def test_blocks_are_views():
    S = HydroState(BlockLayout(2, nh1=4, nl2=2))
    S.v[:] = 1.0
    S.sigma_component(2)[:] = 5.0
    S.x0[:] = 3.0
    o = S.layout.offsets
    np.testing.assert_array_equal(S.data[o[1]:o[2]], 1.0)
    np.testing.assert_array_equal(S.data[o[3] + 4:o[4]], 5.0)
    np.testing.assert_array_equal(S.data[o[4]:], 3.0)
    assert not S.e.any()


def test_copy_assign_and_finiteness():
    S = HydroState(BlockLayout(1, nh1=3, nl2=2))
    S.e[:] = 2.0
    T = S.copy()
    T.e[:] = 4.0
    assert S.e[0] == 2.0
    S.assign(T)
    assert S.e[0] == 4.0
    assert S.is_finite()
    S.v[1] = np.inf
    assert not S.is_finite()


def test_state_rejects_wrong_size():
    with pytest.raises(ValueError):
        HydroState(BlockLayout(2, nh1=4, nl2=2), np.zeros(3))


def test_voigt_index_is_symmetric():
    idx = voigt_index(3)
    np.testing.assert_array_equal(idx, idx.T)
    assert idx[0, 0] == 0 and idx[1, 1] == 1 and idx[2, 2] == 2
    assert idx[0, 1] == 3 and idx[1, 2] == 4 and idx[0, 2] == 5


def test_energy_history_drift():
    h = EnergyHistory()
    assert h.relative_drift() == 0.0
    assert "empty" in repr(h)
    h.append(EnergyRecord(step=0, t=0.0, dt=0.0, ie=2.0, ke=0.0))
    h.append(EnergyRecord(step=1, t=0.1, dt=0.1, ie=1.5, ke=0.5 + 2e-6))
    assert len(h) == 2
    assert h.relative_drift() == pytest.approx(1e-6)
    assert h.records[-1].to_dict()["total"] == pytest.approx(2.0 + 2e-6)
    assert "rel. drift" in repr(h)


def test_stopwatch_accumulates():
    t = TimingData()
    with t.sw_force:
        sum(range(1000))
    first = t.sw_force.elapsed
    assert first > 0.0
    with t.sw_force:
        pass
    assert t.sw_force.elapsed >= first
    sw = StopWatch()
    sw.stop()
    assert sw.elapsed == 0.0
    assert set(t.summary()) >= {"force_s", "cg_h1_s", "cg_l2_s", "qdata_s"}


def test_serial_reduction_is_identity():
    r = SerialReduction()
    assert r.global_min(3.5) == 3.5
    assert r.global_sum(2.0) == 2.0


def test_blast_energy_and_projection():
    l2 = L2Space(structured_mesh((1.0, 1.0), (2, 2)), 1)
    e = blast_energy(l2, 0.1, 5.0)
    np.testing.assert_array_equal(e[l2.elem_dofs[0]], 5.0)
    np.testing.assert_array_equal(e[l2.elem_dofs[1:]].ravel(), 0.1)
    x = project_l2(l2, lambda X: X[:, 0])
    np.testing.assert_allclose(x, l2.node_coords()[:, 0])
    xy = project_l2(l2, lambda X: X)
    np.testing.assert_allclose(xy[l2.ndofs:], l2.node_coords()[:, 1])


def test_lithostatic_profile_and_gravity():
    coords = np.array([[0.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    s = lithostatic_stress(coords, np.array([2.0, 2.0]), 10.0, 1.0, 3)
    assert s.shape == (2, 6)
    np.testing.assert_allclose(s[0, :3], -20.0)
    np.testing.assert_allclose(s[1], 0.0)
    np.testing.assert_allclose(s[:, 3:], 0.0)
    np.testing.assert_array_equal(gravity_source(3, 9.8), [0.0, 0.0, -9.8])


def test_identity_return_map_and_weak_zone():
    sig = np.ones(6)
    pls = np.zeros(2)
    out_sig, out_pls = NoPlasticity().return_map(sig, pls, None, 0.1)
    assert out_sig is sig and out_pls is pls
    coords = np.array([[0.0, 0.0], [1.0, 0.0]])
    np.testing.assert_array_equal(initial_plastic_strain(coords, (0.0, 0.0, 0.0), 0.5, 0.2), [0.2, 0.0])


def test_mpi_reduction_single_rank():
    pytest.importorskip("mpi4py")
    from lagrange_hydro.reduction import MPIReduction

    r = MPIReduction()
    size = r.comm.Get_size()
    assert 0 <= r.rank < size
    assert r.global_min(2.5) == pytest.approx(2.5)
    assert r.global_sum(1.0) == pytest.approx(float(size))
