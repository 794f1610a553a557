import numpy as np


def get_omega1(q: np.ndarray) -> np.ndarray:
    """Left-multiplication matrix of a quaternion q = (x, y, z, w).

    For any quaternion p, get_omega1(q) @ p is the Hamilton product q * p (both in
    scalar-last convention). In particular, its last column is q itself, since
    q * (0, 0, 0, 1) = q. For unit q the matrix is orthogonal.

    Args:
        q: (4,) quaternion, scalar-last. It is assumed to be normalized.

    Returns:
        omega1: (4, 4) matrix.
    """
    x, y, z, w = q
    return np.array(
        [
            [w, -z, y, x],
            [z, w, -x, y],
            [-y, x, w, z],
            [-x, -y, -z, w],
        ]
    )


def get_block_diag_omega(n_pm: int, q: np.ndarray) -> np.ndarray:
    """Block-diagonal matrix with get_omega1(q) on each of its n_pm / 4 blocks.

    It maps the rank-one lift of the identity rotation, kron(theta, e4), to the lift
    of the rotation q, kron(theta, q), and is used as the change of basis into the
    "rotated" frame in which the candidate solution becomes the identity.
    """
    assert n_pm % 4 == 0, "n_pm must be a multiple of 4."
    return np.kron(np.eye(n_pm // 4), get_omega1(q))
