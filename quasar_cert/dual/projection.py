""" Projection onto the subspace of dual certificates of the QUASAR relaxation.

    The conventions followed within this module are:
        a) n correspondences give n + 1 blocks of size 4 (block 0 is the global
           block), i.e. matrices of size n_pm = 4n + 4.
        b) theta_prepended = [1, theta_1, ..., theta_n], with theta_i in {+1, -1}.
        c) A dual matrix Lambda is valid when:
             1) its off-diagonal 4x4 blocks are skew-symmetric,
             2) its diagonal 4x4 blocks sum up to zero,
             3) Lambda @ kron(theta_prepended, e4) = 0 (complementary slackness in
                the rotated frame, where the candidate rotation is the identity).
        d) Each off-diagonal block (i, j), i < j, is thus parametrized by a skew 3x3
           matrix and the 3-vector y_ij of its last column (its last row being
           -y_ij^T). The last columns of the diagonal blocks are determined by the
           y_ij through 3). The y_ij of the closest valid matrix are the solution of
           a sparse linear system whose inverse is known in closed form, see
           `get_linear_projection`.
"""
import logging
from functools import lru_cache

import numpy as np
from scipy import sparse

from quasar_cert.utils import last_entry_selector

logger = logging.getLogger(__name__)

_E4 = np.array([0.0, 0.0, 0.0, 1.0])


def pair_index(i: int, j: int, n_blocks: int) -> int:
    """Row-major index of the pair (i, j), i < j, within the strict upper triangle
    of a (n_blocks, n_blocks) grid."""
    assert 0 <= i < j < n_blocks
    return i * n_blocks - i * (i + 1) // 2 + (j - i - 1)


def get_linear_projection(theta_prepended: np.ndarray) -> sparse.csr_matrix:
    """Closed-form inverse of the linear map that yields the off-diagonal vectors y_ij.

    Its diagonal is x = (n + 1) y and its off-diagonal elements are +-y theta_a theta_b
    for pairs sharing one index, with y = 1 / (2n + 6).

    Args:
        theta_prepended: (n + 1,) array [1, theta_1, ..., theta_n].

    Returns:
        A_inv: (m, m) sparse matrix, with m = n(n + 1) / 2 the number of pairs.
    """
    n_blocks = theta_prepended.shape[0]
    n = n_blocks - 1
    y = 1.0 / (2 * n + 6)
    x = (n + 1) * y
    nr_vals = n_blocks * (n_blocks - 1) // 2

    rows_, cols_, vals_ = [], [], []
    for i in range(n_blocks - 1):
        for j in range(i + 1, n_blocks):
            var_1_idx = pair_index(i, j, n_blocks)

            # pairs sharing the index i.
            for p in range(n_blocks):
                if p == i or p == j:
                    continue
                if p < i:
                    var_2_idx = pair_index(p, i, n_blocks)
                    val = y * theta_prepended[j] * theta_prepended[p]
                else:
                    var_2_idx = pair_index(i, p, n_blocks)
                    val = -y * theta_prepended[j] * theta_prepended[p]
                rows_.append(var_2_idx)
                cols_.append(var_1_idx)
                vals_.append(val)

            # pairs sharing the index j.
            for p in range(n_blocks):
                if p == i or p == j:
                    continue
                if p < j:
                    var_2_idx = pair_index(p, j, n_blocks)
                    val = -y * theta_prepended[i] * theta_prepended[p]
                else:
                    var_2_idx = pair_index(j, p, n_blocks)
                    val = y * theta_prepended[i] * theta_prepended[p]
                rows_.append(var_2_idx)
                cols_.append(var_1_idx)
                vals_.append(val)

    # diagonal entries.
    rows_.extend(range(nr_vals))
    cols_.extend(range(nr_vals))
    vals_.extend([x] * nr_vals)

    # duplicated (row, col) entries are summed.
    A_inv = sparse.coo_matrix(
        (vals_, (rows_, cols_)), shape=(nr_vals, nr_vals)
    ).tocsr()
    logger.debug("Inverse map of size %d with %d nonzeros.", nr_vals, A_inv.nnz)
    return A_inv


@lru_cache(maxsize=16)
def _cached_linear_projection(theta_key: tuple) -> sparse.csr_matrix:
    return get_linear_projection(np.array(theta_key))


def get_cached_linear_projection(theta_prepended: np.ndarray) -> sparse.csr_matrix:
    """Same as `get_linear_projection`, cached on theta_prepended (and thus on n).

    NOTE: the returned matrix is shared among callers and must not be modified.
    """
    return _cached_linear_projection(tuple(float(t) for t in theta_prepended))


def get_block_row_sum(
    W: np.ndarray, row: int, theta_prepended: np.ndarray
) -> np.ndarray:
    """Sum of the last columns of the blocks in a block-row, weighted by theta.

    Args:
        W: (n_pm, n_pm) matrix.
        row: index of the block-row.
        theta_prepended: (n + 1,) array.

    Returns:
        (4,) array W[4row : 4row + 4, :] @ kron(theta_prepended, e4).
    """
    entire_row = W[4 * row : 4 * row + 4]
    return entire_row @ last_entry_selector(theta_prepended)


def get_optimal_dual_projection(
    W: np.ndarray, theta_prepended: np.ndarray, A_inv: sparse.spmatrix
) -> np.ndarray:
    """Orthogonal projection of a (symmetric) matrix onto the valid dual matrices.

    Args:
        W: (n_pm, n_pm) matrix. Only its symmetric part is considered.
        theta_prepended: (n + 1,) array [1, theta_1, ..., theta_n].
        A_inv: inverse map given by `get_linear_projection(theta_prepended)`.

    Returns:
        W_dual: (n_pm, n_pm) symmetric matrix satisfying the conditions in c) of
            this module's docstring.
    """
    n_pm = W.shape[0]
    n_blocks = n_pm // 4
    assert W.shape == (n_pm, n_pm) and n_pm % 4 == 0
    assert theta_prepended.shape == (n_blocks,)
    nr_off_diag_blks = A_inv.shape[0]
    assert nr_off_diag_blks == n_blocks * (n_blocks - 1) // 2

    W = 0.5 * (W + W.T)

    # right-hand side of the linear system in the vectors y_ij.
    b_W = np.zeros((nr_off_diag_blks, 3))
    count = 0
    for i in range(n_blocks - 1):
        ri = 4 * i
        for j in range(i + 1, n_blocks):
            rj = 4 * j
            theta_ij = theta_prepended[i] * theta_prepended[j]
            # W([i(4) j(4)], i(1:3)) and W([i(4) j(4)], j(1:3)).
            W_i = np.stack((W[ri + 3, ri : ri + 3], W[rj + 3, ri : ri + 3]))
            W_j = np.stack((W[ri + 3, rj : rj + 3], W[rj + 3, rj : rj + 3]))
            b_W[count] = np.array([-theta_ij, 1.0]) @ W_i + np.array(
                [-1.0, theta_ij]
            ) @ W_j
            count += 1

    b_W_dual = A_inv @ b_W

    # off-diagonal blocks: skew-symmetric part of W's blocks with the optimal y_ij.
    W_dual = np.zeros((n_pm, n_pm))
    count = 0
    for i in range(n_blocks - 1):
        ri = 4 * i
        for j in range(i + 1, n_blocks):
            rj = 4 * j
            W_ij = W[ri : ri + 4, rj : rj + 4]
            y_dual_ij = b_W_dual[count]

            W_dual_ij = 0.5 * (W_ij - W_ij.T)
            W_dual_ij[:3, 3] = y_dual_ij
            W_dual_ij[3, :3] = -y_dual_ij

            W_dual[ri : ri + 4, rj : rj + 4] = W_dual_ij
            W_dual[rj : rj + 4, ri : ri + 4] = W_dual_ij.T
            count += 1

    # diagonal blocks: last column/row given by complementary slackness. The row sums
    # are computed before filling any diagonal block.
    row_sums = [get_block_row_sum(W_dual, i, theta_prepended) for i in range(n_blocks)]
    W_diag_sum_33 = np.zeros((3, 3))
    for i in range(n_blocks):
        ri = 4 * i
        W_ii = W[ri : ri + 4, ri : ri + 4].copy()
        W_ii[:, 3] = -theta_prepended[i] * row_sums[i]
        W_ii[3, :] = -theta_prepended[i] * row_sums[i]
        W_dual[ri : ri + 4, ri : ri + 4] = W_ii
        W_diag_sum_33 += W_ii[:3, :3]

    # remove the mean of the top-left 3x3 corners so that the diagonal blocks add up
    # to zero.
    W_diag_mean = np.zeros((4, 4))
    W_diag_mean[:3, :3] = W_diag_sum_33 / n_blocks
    W_dual -= np.kron(np.eye(n_blocks), W_diag_mean)
    return W_dual


def project_to_affine_subspace(
    Y: np.ndarray,
    M_anchor: np.ndarray,
    theta_prepended: np.ndarray,
    A_inv: sparse.spmatrix,
) -> np.ndarray:
    """Orthogonal projection of Y onto the affine set {M_anchor - Lambda}, where
    Lambda ranges over the valid dual matrices.

    When M_anchor = Q_bar - mu * J_bar - Lambda_0, with Lambda_0 a dual matrix
    satisfying complementary slackness, every element of the set is a dual
    certificate candidate in the rotated frame.
    """
    return M_anchor - get_optimal_dual_projection(
        M_anchor - Y, theta_prepended, A_inv
    )
