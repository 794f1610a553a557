import numpy as np
from scipy import sparse

from quasar_cert.cost import get_q_cost
from quasar_cert.dual.initial_guess import get_lambda_guess
from quasar_cert.dual.projection import (
    get_linear_projection,
    project_to_affine_subspace,
)
from quasar_cert.embedding import get_block_diag_omega
from quasar_cert.utils import (
    last_entry_selector,
    prepend_theta,
    quaternion_from_rotation,
    rank_one_lift,
)
from tests.testing_utils import SyntheticData, blocks_of, random_symmetric

CFG_DATASET = {"seed": 0, "box_size": 1.0}
CFG_DATA = {
    "npoints": 12,
    "noise_level": 0.0,
    "outlier_ratio": 0.25,
    "outlier_offset": 5.0,
}
CBAR2 = 1.0


def sample_problem(**kwargs):
    """Data, theta_prepended and the anchor M0 = Q_bar - mu J_bar - Lambda_0."""
    dataset = SyntheticData(**CFG_DATASET)
    data = dataset.generate_data(**{**CFG_DATA, **kwargs})
    src, dst, R01 = data["src"], data["dst"], data["R01"]
    theta_prepended = prepend_theta(data["theta"])
    n_pm = 4 * len(theta_prepended)

    q = quaternion_from_rotation(R01)
    Q = get_q_cost(src, dst, CBAR2)
    x = rank_one_lift(theta_prepended, q)
    mu = x @ Q @ x
    D = get_block_diag_omega(n_pm, q)
    J_bar = np.zeros((n_pm, n_pm))
    J_bar[:4, :4] = np.eye(4)

    lambda_guess = get_lambda_guess(R01, theta_prepended, src, dst, CBAR2)
    M0 = D.T @ Q @ D - mu * J_bar - lambda_guess.toarray()
    return data, theta_prepended, lambda_guess, M0


def test_lambda_guess_is_sparse_block_diagonal():
    data, theta_prepended, lambda_guess, _ = sample_problem(noise_level=0.05)
    n_blocks = len(theta_prepended)

    assert sparse.issparse(lambda_guess)
    assert lambda_guess.shape == (4 * n_blocks, 4 * n_blocks)
    assert lambda_guess.nnz <= 16 * n_blocks

    L = lambda_guess.toarray()
    blocks = blocks_of(L)
    assert np.allclose(L, L.T)
    for i in range(n_blocks):
        for j in range(n_blocks):
            if i != j:
                assert (blocks[i, j] == 0).all()
    # the global block is the sum of the (negated) correspondence blocks.
    assert np.allclose(blocks[0, 0], -sum(blocks[i, i] for i in range(1, n_blocks)))


def test_lambda_guess_kkt_entries():
    data, theta_prepended, lambda_guess, _ = sample_problem(noise_level=0.05)
    src, dst, R01 = data["src"], data["dst"], data["R01"]
    blocks = blocks_of(lambda_guess.toarray())

    residuals = R01.T @ (dst - R01 @ src)
    sq_norms = (residuals**2).sum(0)
    for i, t in enumerate(theta_prepended[1:]):
        expected = 0.75 * sq_norms[i] + 0.25 * CBAR2
        if t < 0:
            expected = 0.25 * sq_norms[i] + 0.75 * CBAR2
        assert np.isclose(blocks[i + 1, i + 1][3, 3], expected)
        coeff = 1.5 if t > 0 else 0.5
        assert np.allclose(
            blocks[i + 1, i + 1][:3, 3], coeff * np.cross(residuals[:, i], src[:, i])
        )


def test_initial_guess_satisfies_complementary_slackness():
    _, theta_prepended, _, M0 = sample_problem()
    x_bar = last_entry_selector(theta_prepended)
    assert np.allclose(M0 @ x_bar, 0.0, atol=1e-9)
    assert abs(x_bar @ M0 @ x_bar) < 1e-9


def test_affine_projection_keeps_complementary_slackness():
    _, theta_prepended, _, M0 = sample_problem()
    A_inv = get_linear_projection(theta_prepended)
    x_bar = last_entry_selector(theta_prepended)
    rng = np.random.default_rng(0)

    Y = M0 + random_symmetric(M0.shape[0], rng)
    M_affine = project_to_affine_subspace(Y, M0, theta_prepended, A_inv)

    assert np.allclose(M_affine @ x_bar, 0.0, atol=1e-9)
    assert np.allclose(
        project_to_affine_subspace(M_affine, M0, theta_prepended, A_inv), M_affine
    )
    # the anchor itself is a fixed point.
    assert np.allclose(project_to_affine_subspace(M0, M0, theta_prepended, A_inv), M0)
