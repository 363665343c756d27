"""Ideal-gas closure and region-wise material tables."""

import math

import numpy as np
import pytest

from lagrange_hydro.material import (
    NO_VISCOPLASTICITY,
    MaterialTable,
    evaluate,
    evaluate_batch,
)


def test_ideal_gas_pressure_and_sound_speed():
    p, c = evaluate(2.0, 3.0, 1.4)
    assert p == pytest.approx(0.4 * 2.0 * 3.0)
    assert c == pytest.approx(math.sqrt(1.4 * 0.4 * 3.0))


def test_negative_energy_is_clipped():
    p, c = evaluate(1.0, -5.0, 5.0 / 3.0)
    assert p == 0.0
    assert c == 0.0


def test_pwave_modulus_adds_to_sound_speed():
    rho, e, g = 2.0, 1.0, 1.4
    pmod = 10.0
    _, c = evaluate(rho, e, g, pmod)
    assert c == pytest.approx(math.sqrt(g * (g - 1.0) * e + pmod / rho))


def test_batch_matches_pointwise():
    n = 7
    rng = np.random.default_rng(0)
    rho = rng.uniform(0.5, 3.0, n)
    e = rng.uniform(-1.0, 4.0, n)
    gamma = rng.uniform(1.1, 2.0, n)
    pmod = np.where(np.arange(n) % 2 == 0, 0.0, 5.0)
    p = np.zeros(n + 2)
    c = np.zeros(n + 2)
    evaluate_batch(n, gamma, rho, e, pmod, p, c)
    for k in range(n):
        pk, ck = evaluate(rho[k], e[k], gamma[k], pmod[k])
        assert p[k] == pytest.approx(pk)
        assert c[k] == pytest.approx(ck)
    # untouched tail
    assert p[n] == 0.0 and c[n] == 0.0


def test_single_value_broadcasts_to_every_region():
    t = MaterialTable.from_lists(3, rho0=[2.0], gamma=[1.4], mu=[1.0, 2.0, 3.0])
    assert t.n_regions == 3
    np.testing.assert_array_equal(t.rho0, [2.0, 2.0, 2.0])
    np.testing.assert_array_equal(t.mu, [1.0, 2.0, 3.0])
    np.testing.assert_array_equal(t.lambda_, [0.0, 0.0, 0.0])


def test_length_mismatch_names_parameter():
    with pytest.raises(ValueError, match="lambda"):
        MaterialTable.from_lists(3, rho0=[1.0], gamma=[1.4], lambda_=[1.0, 2.0])


def test_invalid_gamma_and_density_rejected():
    with pytest.raises(ValueError, match="gamma"):
        MaterialTable.from_lists(1, rho0=[1.0], gamma=[1.0])
    with pytest.raises(ValueError, match="rho0"):
        MaterialTable.from_lists(1, rho0=[0.0], gamma=[1.4])


def test_plastic_viscosity_off_unless_viscoplastic():
    t = MaterialTable.from_lists(2, rho0=[1.0], gamma=[1.4], plastic_viscosity=[5.0])
    np.testing.assert_array_equal(t.plastic_viscosity, [NO_VISCOPLASTICITY] * 2)
    t = MaterialTable.from_lists(2, rho0=[1.0], gamma=[1.4], plastic_viscosity=[5.0], viscoplastic=True)
    np.testing.assert_array_equal(t.plastic_viscosity, [5.0, 5.0])


def test_per_element_gather_and_range_check():
    t = MaterialTable.from_lists(2, rho0=[1.0, 3.0], gamma=[1.4, 2.0], lambda_=[1.0], mu=[0.5])
    em = t.per_element(np.array([2, 1, 2]))
    np.testing.assert_array_equal(em.rho0, [3.0, 1.0, 3.0])
    np.testing.assert_array_equal(em.gamma, [2.0, 1.4, 2.0])
    with pytest.raises(ValueError):
        t.per_element(np.array([1, 3]))
