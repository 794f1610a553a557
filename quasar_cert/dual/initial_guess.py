import numpy as np
from scipy import sparse

from quasar_cert.utils import hatmap


def _correspondence_block(
    src_i: np.ndarray, residual: np.ndarray, is_inlier: bool, cbar2: float
) -> np.ndarray:
    """4x4 block obtained from the KKT conditions of a single correspondence.

    Args:
        src_i: (3,) source point.
        residual: (3,) residual R^T (dst_i - R src_i), i.e. expressed in the frame
            where the candidate rotation is the identity.
        is_inlier: whether the correspondence is labeled as inlier.
        cbar2: squared truncation threshold.
    """
    # the weights of the residual and of the truncation threshold are swapped
    # depending on the active piece of the TLS cost.
    w_res, w_cbar2, w_vec = (0.75, 0.25, 1.5) if is_inlier else (0.25, 0.75, 0.5)

    src_hat = hatmap(src_i)
    res_hat = hatmap(residual)
    res_sq_norm = residual.dot(residual)
    eye3 = np.eye(3)

    block = np.zeros((4, 4))
    # (4, 4) entry, from complementary slackness.
    block[3, 3] = -w_res * res_sq_norm - w_cbar2 * cbar2
    # top-left 3x3.
    block[:3, :3] = (
        src_hat @ src_hat
        - 0.5 * src_i.dot(residual) * eye3
        + 0.5 * res_hat @ src_hat
        + 0.5 * np.outer(residual, src_i)
        - w_res * res_sq_norm * eye3
        - 0.25 * cbar2 * eye3
    )
    # vector part.
    vec = -w_vec * res_hat @ src_i
    block[:3, 3] = vec
    block[3, :3] = vec
    return block


def get_lambda_guess(
    R: np.ndarray,
    theta_prepended: np.ndarray,
    src: np.ndarray,
    dst: np.ndarray,
    cbar2: float,
) -> sparse.csr_matrix:
    """Initial guess of the dual matrix (in the rotated frame).

    Block i + 1 is the negated i-th correspondence block, while the global block 0
    accumulates all of them. Hence the off-diagonal blocks are zero and the diagonal
    ones add up to zero.

    Args:
        R: (3, 3) candidate rotation.
        theta_prepended: (n + 1,) array [1, theta_1, ..., theta_n].
        src: (3, n) source points.
        dst: (3, n) destination points.
        cbar2: squared truncation threshold.

    Returns:
        lambda_guess: (4n + 4, 4n + 4) sparse matrix.
    """
    n = src.shape[1]
    assert dst.shape == src.shape and theta_prepended.shape == (n + 1,)
    n_pm = 4 * n + 4

    # residuals in the rotated frame.
    residuals = R.T @ (dst - R @ src)

    r_idx, c_idx = np.meshgrid(np.arange(4), np.arange(4), indexing="ij")
    r_idx, c_idx = r_idx.ravel(), c_idx.ravel()

    rows_, cols_, vals_ = [], [], []
    topleft_block = np.zeros((4, 4))
    for i in range(n):
        current_block = _correspondence_block(
            src[:, i], residuals[:, i], theta_prepended[i + 1] > 0, cbar2
        )
        s = 4 * (i + 1)
        rows_.append(s + r_idx)
        cols_.append(s + c_idx)
        vals_.append(-current_block.ravel())
        topleft_block += current_block

    rows_.append(r_idx)
    cols_.append(c_idx)
    vals_.append(topleft_block.ravel())

    return sparse.coo_matrix(
        (np.concatenate(vals_), (np.concatenate(rows_), np.concatenate(cols_))),
        shape=(n_pm, n_pm),
    ).tocsr()
