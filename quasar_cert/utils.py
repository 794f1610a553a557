from typing import Tuple

import numpy as np
from scipy.spatial.transform import Rotation

_E4 = np.array([0.0, 0.0, 0.0, 1.0])


def hatmap(a):
    """Skew-symmetric matrix from a 3D vector (array) of shape (3,)."""
    return np.array(
        [
            [0, -a[2], a[1]],
            [a[2], 0, -a[0]],
            [-a[1], a[0], 0],
        ]
    )


def vector_kron(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Kronecker product of two 1D arrays, i.e. [a0 * b, a1 * b, ...]."""
    return (a[:, None] * b[None]).ravel()


def quaternion_from_rotation(R: np.ndarray) -> np.ndarray:
    """Unit quaternion (x, y, z, w), scalar-last, of a rotation matrix."""
    q = Rotation.from_matrix(R).as_quat()
    return q / np.linalg.norm(q)


def prepend_theta(theta: np.ndarray) -> np.ndarray:
    """Prepend the constant 1 of the global block to the {+1, -1} inlier vector.

    Args:
        theta: (n,) boolean (True for inliers) or {+1, -1} array.

    Returns:
        theta_prepended: (n + 1,) float array [1, theta_1, ..., theta_n].
    """
    theta = np.asarray(theta)
    if theta.dtype == bool:
        theta = np.where(theta, 1.0, -1.0)
    return np.concatenate(([1.0], theta.astype(float)))


def rank_one_lift(theta_prepended: np.ndarray, q: np.ndarray) -> np.ndarray:
    """x = kron(theta_prepended, q), the rank-one factor of the SDP variable."""
    return vector_kron(theta_prepended, q)


def last_entry_selector(theta_prepended: np.ndarray) -> np.ndarray:
    """kron(theta_prepended, e4). Equals the rank-one lift in the rotated frame."""
    return vector_kron(theta_prepended, _E4)


def get_nearest_psd(A: np.ndarray) -> np.ndarray:
    """Projection of a symmetric matrix onto the positive-semidefinite cone.

    The negative eigenvalues of the symmetric part of A are clipped to zero.
    """
    A = 0.5 * (A + A.T)
    evals, evecs = np.linalg.eigh(A)
    evals = evals.clip(min=0.0)
    return (evecs * evals) @ evecs.T


def min_eigenvalue(A: np.ndarray) -> float:
    return float(np.linalg.eigvalsh(0.5 * (A + A.T))[0])


def is_rotation(R: np.ndarray, atol: float = 1e-6) -> Tuple[bool, str]:
    """Check that R belongs to SO(3).

    Returns:
        is_valid: True if R is a 3x3 orthonormal matrix with positive determinant.
        reason: description of the failed check (empty if is_valid).
    """
    if R.shape != (3, 3):
        return False, f"rotation must be a (3, 3) matrix. Got shape {R.shape}"
    if not np.isfinite(R).all():
        return False, "rotation has non-finite entries"
    if not np.allclose(R.T @ R, np.eye(3), atol=atol):
        return False, "rotation is not orthonormal"
    if np.linalg.det(R) <= 0:
        return False, "rotation has a non-positive determinant (reflection)"
    return True, ""
