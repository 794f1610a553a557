import numpy as np

from quasar_cert.utils import (
    get_nearest_psd,
    hatmap,
    is_rotation,
    prepend_theta,
    quaternion_from_rotation,
    vector_kron,
)
from tests.testing_utils import random_rotation, random_symmetric


def test_hatmap():
    rng = np.random.default_rng(0)
    a, b = rng.normal(size=3), rng.normal(size=3)
    assert np.allclose(hatmap(a) @ b, np.cross(a, b))
    assert np.allclose(hatmap(a), -hatmap(a).T)


def test_vector_kron():
    a, b = np.array([1.0, -2.0]), np.array([3.0, 4.0, 5.0])
    assert np.allclose(vector_kron(a, b), np.kron(a, b))


def test_prepend_theta():
    expected = [1.0, 1.0, -1.0, 1.0]
    assert np.allclose(prepend_theta(np.array([True, False, True])), expected)
    assert np.allclose(prepend_theta(np.array([1, -1, 1])), expected)


def test_quaternion_from_rotation():
    rng = np.random.default_rng(1)
    rot = random_rotation(rng)
    q = quaternion_from_rotation(rot.as_matrix())
    assert np.isclose(np.linalg.norm(q), 1.0)
    # scalar-last convention.
    assert np.allclose(quaternion_from_rotation(np.eye(3)) ** 2, [0, 0, 0, 1])


def test_nearest_psd():
    A = random_symmetric(12, np.random.default_rng(2))
    A_psd = get_nearest_psd(A)

    assert np.allclose(A_psd, A_psd.T)
    assert np.linalg.eigvalsh(A_psd).min() > -1e-10
    assert np.allclose(get_nearest_psd(A_psd), A_psd)
    # the residual is negative semidefinite.
    assert np.linalg.eigvalsh(A - A_psd).max() < 1e-10


def test_is_rotation():
    R01 = random_rotation(np.random.default_rng(3)).as_matrix()
    assert is_rotation(R01)[0]
    assert not is_rotation(-R01)[0]
    assert not is_rotation(1.1 * R01)[0]
    assert not is_rotation(np.eye(4))[0]
