"""Data matrix of the QUASAR relaxation of truncated least squares (TLS) rotation
estimation.

Given the lift x = [q; theta_1 q; ...; theta_n q], with q a unit quaternion and
theta_i in {+1, -1} the inlier (+1) / outlier (-1) switch of each correspondence,
the TLS cost

    sum_i  (1 + theta_i) / 2 * ||dst_i - R(q) src_i||^2 + (1 - theta_i) / 2 * cbar2

is the quadratic form x^T Q x, with Q = Q1 + Q2 computed below.
"""
import numpy as np

# Coefficient matrix that maps vec(q q^T) to vec(R), both column-major and with
# scalar-last quaternions q = (x, y, z, w).
_P = np.array(
    [
        [1, 0, 0, 0, 0, -1, 0, 0, 0, 0, -1, 0, 0, 0, 0, 1],
        [0, 1, 0, 0, 1, 0, 0, 0, 0, 0, 0, 1, 0, 0, 1, 0],
        [0, 0, 1, 0, 0, 0, 0, -1, 1, 0, 0, 0, 0, -1, 0, 0],
        [0, 1, 0, 0, 1, 0, 0, 0, 0, 0, 0, -1, 0, 0, -1, 0],
        [-1, 0, 0, 0, 0, 1, 0, 0, 0, 0, -1, 0, 0, 0, 0, 1],
        [0, 0, 0, 1, 0, 0, 1, 0, 0, 1, 0, 0, 1, 0, 0, 0],
        [0, 0, 1, 0, 0, 0, 0, 1, 1, 0, 0, 0, 0, 1, 0, 0],
        [0, 0, 0, -1, 0, 0, 1, 0, 0, 1, 0, 0, -1, 0, 0, 0],
        [-1, 0, 0, 0, 0, -1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1],
    ],
    dtype=float,
)
_P.setflags(write=False)


def compute_pk(src_k: np.ndarray, dst_k: np.ndarray) -> np.ndarray:
    """(4, 4) symmetric matrix P_k such that q^T P_k q = dst_k^T R(q) src_k.

    P_k = reshape(P^T vec(dst_k src_k^T), (4, 4)), column-major.
    """
    outer = dst_k[:, None] * src_k[None]
    return (_P.T @ outer.ravel(order="F")).reshape(4, 4, order="F")


def get_q_cost(src: np.ndarray, dst: np.ndarray, cbar2: float) -> np.ndarray:
    """Compute the cost matrix Q of the QUASAR relaxation.

    Args:
        src: (3, n) source points.
        dst: (3, n) destination points.
        cbar2: squared truncation threshold of the TLS cost.

    Returns:
        Q: (4n + 4, 4n + 4) symmetric cost matrix. Its (0, 0) block is zero.
    """
    assert src.shape == dst.shape and src.shape[0] == 3
    n = src.shape[1]
    n_pm = 4 + 4 * n
    eye4 = np.eye(4)

    sq_norms = (src * src).sum(0) + (dst * dst).sum(0)

    Q1 = np.zeros((n_pm, n_pm))
    Q2 = np.zeros((n_pm, n_pm))
    for k in range(n):
        s = 4 * k + 4
        P_k = compute_pk(src[:, k], dst[:, k])

        # cross terms between the global block and the k-th correspondence.
        ck = 0.5 * (sq_norms[k] - cbar2)
        Q1[:4, s : s + 4] += -0.5 * P_k + 0.5 * ck * eye4
        Q1[s : s + 4, :4] += -0.5 * P_k + 0.5 * ck * eye4

        # diagonal penalty of the k-th correspondence.
        ck = 0.5 * (sq_norms[k] + cbar2)
        Q2[s : s + 4, s : s + 4] += -P_k + ck * eye4

    return Q1 + Q2


def tls_cost(
    R: np.ndarray,
    src: np.ndarray,
    dst: np.ndarray,
    theta_prepended: np.ndarray,
    cbar2: float,
) -> float:
    """TLS registration cost of a rotation under a given inlier/outlier labeling."""
    theta = theta_prepended[1:]
    residuals = ((dst - R @ src) ** 2).sum(0)
    return float(
        (0.5 * (1 + theta) * residuals).sum() + (0.5 * (1 - theta) * cbar2).sum()
    )
