import numpy as np
import pytest
ak = pytest.importorskip("awkward")
pytest.importorskip("vector")
from src.analysis import physics


def _records(pt, eta, phi):
    return ak.Array({"pt": pt, "eta": eta, "phi": phi})


def test_delta_r_pure_eta_difference_is_exact():
    a = _records([10.0], [0.0], [0.0])
    b = _records([1.0], [0.5], [0.0])

    dr = physics.delta_r(a, b)

    assert ak.to_list(dr) == [0.5]


def test_delta_r_wraps_azimuth():
    # 3.1 and -3.1 are 2*pi - 6.2 apart, not 6.2
    a = _records([10.0], [0.0], [3.1])
    b = _records([1.0], [0.0], [-3.1])

    dr = ak.to_numpy(physics.delta_r(a, b))

    assert np.allclose(dr, 2 * np.pi - 6.2)


def test_delta_r_is_symmetric_and_keeps_jagged_structure():
    a = ak.Array([[{"pt": 5.0, "eta": 0.3, "phi": 1.0}], []])
    b = ak.Array([[{"pt": 2.0, "eta": -0.1, "phi": 1.3}], []])

    forward = physics.delta_r(a, b)
    backward = physics.delta_r(b, a)

    assert ak.to_list(ak.num(forward, axis=1)) == [1, 0]
    assert np.allclose(ak.to_numpy(ak.flatten(forward)), np.hypot(0.4, 0.3))
    assert np.allclose(ak.to_numpy(ak.flatten(forward)), ak.to_numpy(ak.flatten(backward)))


def test_from_cartesian_transverse_plane():
    px = np.array([3.0, 0.0])
    py = np.array([4.0, 2.0])
    pz = np.array([0.0, 0.0])

    polar = physics.from_cartesian(px, py, pz)

    assert np.allclose(ak.to_numpy(polar["pt"]), [5.0, 2.0])
    assert np.allclose(ak.to_numpy(polar["eta"]), [0.0, 0.0])
    assert np.allclose(ak.to_numpy(polar["phi"]), [np.arctan2(4.0, 3.0), np.pi / 2])


def test_from_cartesian_pseudorapidity():
    # eta = asinh(pz / pt)
    polar = physics.from_cartesian(ak.Array([[10.0]]), ak.Array([[0.0]]), ak.Array([[21.5]]))

    assert np.allclose(ak.to_numpy(ak.flatten(polar["eta"])), np.arcsinh(2.15))


@pytest.mark.parametrize("d", [0.1, 0.2, 0.3, 0.5, 0.7, 1.3])
def test_delta_r_pure_phi_difference_is_exact(d):
    a = _records([10.0, 10.0], [0.0, 0.0], [0.0, d])
    b = _records([1.0, 1.0], [0.0, 0.0], [d, 0.0])

    dr = physics.delta_r(a, b)

    assert ak.to_list(dr) == [d, d]


def test_delta_phi_shifts_only_outside_range():
    first = ak.Array([0.3, 3.0, -3.0, np.pi, 0.0])
    second = ak.Array([0.0, -3.0, 3.0, 0.0, np.pi])

    dphi = ak.to_list(physics.delta_phi(first, second))

    assert dphi[0] == 0.3
    assert dphi[1] == pytest.approx(6.0 - 2 * np.pi)
    assert dphi[2] == pytest.approx(2 * np.pi - 6.0)
    # the range is [-pi, pi): +pi maps to -pi
    assert dphi[3] == pytest.approx(-np.pi)
    assert dphi[4] == pytest.approx(-np.pi)
