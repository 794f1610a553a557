import logging

import numpy as np

from quasar_cert.cost import get_q_cost
from quasar_cert.dual.initial_guess import get_lambda_guess
from quasar_cert.dual.projection import (
    get_cached_linear_projection,
    get_linear_projection,
    project_to_affine_subspace,
)
from quasar_cert.embedding import get_block_diag_omega
from quasar_cert.models.base import (
    CertificationResult,
    CertificationStatus,
    CertifierBase,
)
from quasar_cert.utils import (
    get_nearest_psd,
    min_eigenvalue,
    quaternion_from_rotation,
    rank_one_lift,
)

logger = logging.getLogger(__name__)


class DRSCertifier(CertifierBase):
    """Certifier based on Douglas-Rachford splitting.

    The candidate is globally optimal for the QUASAR relaxation if there is a dual
    matrix Lambda such that M = Q - mu J - Lambda is PSD, where mu is the cost of the
    candidate. In the frame where the candidate rotation is the identity, Lambda is
    searched in the affine set of dual matrices satisfying complementary slackness,
    by alternating projections onto it and onto the PSD cone. Each iterate of the
    affine set gives a lower bound of the relaxation's optimum from the minimum
    eigenvalue of M, and thus a sub-optimality gap.
    """

    DEFAULT_CFG = {
        **CertifierBase.DEFAULT_CFG,
        # tolerance of the sub-optimality gap.
        "sub_optimality": 1e-3,
        "max_iterations": 100,
        # relaxation parameter of the Douglas-Rachford update, in (0, 2).
        "gamma_tau": 1.8,
        # reuse the inverse map for repeated theta (and thus number of points).
        "cache_inverse_map": True,
        # keep the dual matrix attaining the best gap in the result.
        "keep_certificate": False,
    }

    def _check_cfg(self):
        super()._check_cfg()
        if not 0 < self.cfg["gamma_tau"] < 2:
            raise ValueError(
                f"gamma_tau must be in (0, 2). Got {self.cfg['gamma_tau']}"
            )
        if self.cfg["max_iterations"] < 1:
            raise ValueError(
                f"max_iterations must be positive. Got {self.cfg['max_iterations']}"
            )
        if self.cfg["sub_optimality"] < 0:
            raise ValueError(
                f"sub_optimality must be non-negative. Got {self.cfg['sub_optimality']}"
            )

    def _certify(self, R, src, dst, theta_prepended) -> CertificationResult:
        cfg = self.cfg
        n = src.shape[1]
        n_pm = 4 + 4 * n
        cbar2 = cfg["cbar2"]

        # inverse map of the projection onto the affine subspace.
        if cfg["cache_inverse_map"]:
            inverse_map = get_cached_linear_projection(theta_prepended)
        else:
            inverse_map = get_linear_projection(theta_prepended)

        Q_cost = get_q_cost(src, dst, cbar2)

        q_solution = quaternion_from_rotation(R)
        # this would be the rank-1 decomposition of Z if Z were the globally optimal
        # solution of the relaxation.
        x = rank_one_lift(theta_prepended, q_solution)

        # change of basis to the frame where the candidate rotation is the identity.
        D_omega = get_block_diag_omega(n_pm, q_solution)
        Q_bar = D_omega.T @ Q_cost @ D_omega
        x_bar = D_omega.T @ x
        J_bar = np.zeros((n_pm, n_pm))
        J_bar[:4, :4] = np.eye(4)

        # cost of the primal. Under strong duality, it is also the cost of the dual.
        mu = float(x @ Q_cost @ x)

        lambda_bar_init = get_lambda_guess(R, theta_prepended, src, dst, cbar2)

        # this initial guess lives in the affine subspace.
        M_init = Q_bar - mu * J_bar
        M_init -= lambda_bar_init.toarray()

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "n=%d, mu=%.6e, complementary slackness residual=%.3e",
                n,
                mu,
                np.linalg.norm(M_init @ x_bar),
            )

        suboptim_traj = []
        best_suboptim = np.inf
        best_M = None
        status = CertificationStatus.EXCEEDED_MAX_ITERATIONS

        M = M_init.copy()
        for it in range(cfg["max_iterations"]):
            # projection onto the PSD cone.
            M_psd = get_nearest_psd(M)

            # projection of the reflection onto the affine subspace.
            M_affine = project_to_affine_subspace(
                2 * M_psd - M, M_init, theta_prepended, inverse_map
            )

            current_suboptim = self.compute_sub_optimality_gap(M_affine, mu, n)
            suboptim_traj.append(current_suboptim)
            logger.debug("iter %d: sub-optimality gap %.6e", it, current_suboptim)

            if current_suboptim < best_suboptim:
                best_suboptim = current_suboptim
                if cfg["keep_certificate"]:
                    best_M = M_affine

            if current_suboptim <= cfg["sub_optimality"]:
                status = CertificationStatus.CERTIFIED
                break

            M = M + cfg["gamma_tau"] * (M_affine - M_psd)

        logger.info(
            "Certification finished with status '%s' after %d iterations "
            "(best sub-optimality gap: %.3e).",
            status,
            len(suboptim_traj),
            best_suboptim,
        )
        return CertificationResult(
            status=status,
            suboptimality_traj=suboptim_traj,
            primal_cost=mu,
            lower_bound=mu - best_suboptim * max(mu, 1.0),
            certificate=best_M,
        )

    @staticmethod
    def compute_sub_optimality_gap(M: np.ndarray, mu: float, n: int) -> float:
        """Sub-optimality gap given a dual certificate candidate.

        Each feasible matrix of the relaxation has trace n + 1, hence
        mu + (n + 1) min(lambda_min(M), 0) lower-bounds the relaxation's optimum. The
        gap is relative to mu, and absolute when mu < 1.

        Args:
            M: (n_pm, n_pm) matrix Q_bar - mu J_bar - Lambda, with Lambda a valid dual
                matrix.
            mu: cost of the candidate solution.
            n: number of correspondences.
        """
        min_eig = min_eigenvalue(M)
        return max(-min_eig, 0.0) * (n + 1) / max(mu, 1.0)
