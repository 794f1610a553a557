"""Scenarios of the DRS certifier."""

import numpy as np
import pytest

from quasar_cert import (
    CertificationStatus,
    DRSCertifier,
    InvalidCertificationInput,
)
from tests.testing_utils import SyntheticData

CFG_DATASET = {"seed": 0, "box_size": 1.0}
CFG_DATA = {
    "npoints": 20,
    "noise_level": 0.0,
    "outlier_ratio": 0.0,
}


def test_certify_noisefree_inliers():
    dataset = SyntheticData(**CFG_DATASET)
    data = dataset.generate_data(**CFG_DATA)

    certifier = DRSCertifier()
    result = certifier(data["R01"], data["src"], data["dst"], data["theta"])

    assert result.is_optimal
    assert result.status == CertificationStatus.CERTIFIED
    assert result.n_iterations == len(result.suboptimality_traj) <= 3
    assert result.suboptimality_traj[-1] <= certifier.cfg["sub_optimality"]
    assert abs(result.primal_cost) < 1e-9
    assert result.lower_bound <= result.primal_cost + 1e-12


def test_certify_single_correspondence():
    src = np.array([[1.0], [2.0], [3.0]])
    certifier = DRSCertifier({"max_iterations": 5})
    result = certifier(np.eye(3), src, src.copy(), np.array([True]))

    assert result.status == CertificationStatus.CERTIFIED
    assert abs(result.primal_cost) < 1e-12
    assert result.best_suboptimality < 1e-6


def test_certify_corrupted_inlier_exceeds_iterations():
    dataset = SyntheticData(**CFG_DATASET)
    data = dataset.generate_data(npoints=10)
    dst = data["dst"].copy()
    # mislabeled outlier: large residual but marked as inlier.
    dst[:, 3] += np.array([20.0, -10.0, 5.0])

    max_iterations = 10
    certifier = DRSCertifier({"max_iterations": max_iterations})
    result = certifier(data["R01"], data["src"], dst, data["theta"])

    assert not result.is_optimal
    assert result.status == CertificationStatus.EXCEEDED_MAX_ITERATIONS
    assert len(result.suboptimality_traj) == max_iterations
    assert all(np.isfinite(result.suboptimality_traj))
    assert min(result.suboptimality_traj) > certifier.cfg["sub_optimality"]
    # relabeling the point as outlier is cheaper, so the candidate is far from optimal.
    assert result.best_suboptimality > 0.5


def test_certify_with_outliers_gives_valid_bounds():
    dataset = SyntheticData(**CFG_DATASET)
    data = dataset.generate_data(npoints=10, outlier_ratio=0.3, noise_level=0.01)

    certifier = DRSCertifier({"max_iterations": 20, "keep_certificate": True})
    result = certifier(data["R01"], data["src"], data["dst"], data["theta"])

    assert 1 <= result.n_iterations <= 20
    assert all(g >= 0 and np.isfinite(g) for g in result.suboptimality_traj)
    assert result.lower_bound <= result.primal_cost
    assert result.certificate is not None
    assert result.certificate.shape == (44, 44)


def test_boolean_and_signed_theta_are_equivalent():
    dataset = SyntheticData(**CFG_DATASET)
    data = dataset.generate_data(npoints=8, outlier_ratio=0.25, noise_level=0.01)
    signed_theta = np.where(data["theta"], 1, -1)

    certifier = DRSCertifier({"max_iterations": 5})
    res_bool = certifier(data["R01"], data["src"], data["dst"], data["theta"])
    res_signed = certifier(data["R01"], data["src"], data["dst"], signed_theta)

    assert np.allclose(res_bool.suboptimality_traj, res_signed.suboptimality_traj)
    assert res_bool.status == res_signed.status


def test_noise_bound_normalization():
    dataset = SyntheticData(**CFG_DATASET)
    data = dataset.generate_data(npoints=8, noise_level=0.01)
    scale = 0.1

    certifier = DRSCertifier({"max_iterations": 3})
    certifier_scaled = DRSCertifier({"max_iterations": 3, "noise_bound": scale})
    res = certifier(data["R01"], data["src"], data["dst"], data["theta"])
    res_scaled = certifier_scaled(
        data["R01"], scale * data["src"], scale * data["dst"], data["theta"]
    )

    assert np.isclose(res.primal_cost, res_scaled.primal_cost)
    assert np.allclose(res.suboptimality_traj, res_scaled.suboptimality_traj)


def test_cache_does_not_change_results():
    dataset = SyntheticData(**CFG_DATASET)
    data = dataset.generate_data(npoints=8, outlier_ratio=0.25, noise_level=0.01)
    args = (data["R01"], data["src"], data["dst"], data["theta"])

    res_cached = DRSCertifier({"max_iterations": 4})(*args)
    res = DRSCertifier({"max_iterations": 4, "cache_inverse_map": False})(*args)

    assert res_cached.suboptimality_traj == res.suboptimality_traj


def test_invalid_inputs():
    dataset = SyntheticData(**CFG_DATASET)
    data = dataset.generate_data(npoints=5)
    R01, src, dst, theta = data["R01"], data["src"], data["dst"], data["theta"]
    certifier = DRSCertifier()

    invalid_calls = [
        # no correspondences.
        (R01, np.zeros((3, 0)), np.zeros((3, 0)), np.zeros(0, dtype=bool)),
        # mismatched number of points.
        (R01, src, dst[:, :4], theta),
        (R01, src, dst, theta[:4]),
        # wrong dimensionality.
        (R01, src[:2], dst[:2], theta),
        # not a rotation.
        (2.0 * R01, src, dst, theta),
        (R01 @ np.diag([1.0, 1.0, -1.0]), src, dst, theta),
        (R01[:2], src, dst, theta),
        # labels not in {+1, -1}.
        (R01, src, dst, np.zeros(5)),
        # non-finite points.
        (R01, np.full((3, 5), np.nan), dst, theta),
    ]
    for args in invalid_calls:
        with pytest.raises(InvalidCertificationInput):
            certifier(*args)

    assert issubclass(InvalidCertificationInput, ValueError)


def test_invalid_configuration():
    with pytest.raises(ValueError):
        DRSCertifier({"unknown_key": 1})
    with pytest.raises(ValueError):
        DRSCertifier({"gamma_tau": 2.5})
    with pytest.raises(ValueError):
        DRSCertifier({"max_iterations": 0})
    with pytest.raises(ValueError):
        DRSCertifier({"cbar2": -1.0})

    certifier = DRSCertifier()
    with pytest.raises(TypeError):
        certifier.cfg["max_iterations"] = 10  # type: ignore
