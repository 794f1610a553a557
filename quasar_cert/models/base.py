from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple

import numpy as np

from quasar_cert.utils import is_rotation, prepend_theta


class InvalidCertificationInput(ValueError):
    """Raised when the inputs of a certification call are inconsistent."""


class CertificationStatus:
    CERTIFIED = "certified"
    EXCEEDED_MAX_ITERATIONS = "exceeded_max_iterations"


class CertificationResult:
    """Outcome of a certification call.

    Attributes:
        is_optimal: True if the sub-optimality gap reached the tolerance.
        status: CertificationStatus.CERTIFIED or EXCEEDED_MAX_ITERATIONS.
        best_suboptimality: smallest gap found.
        suboptimality_traj: gap at each iteration.
        n_iterations: number of iterations run.
        primal_cost: cost mu of the candidate solution.
        lower_bound: lower bound of the relaxation's optimum given by the best gap.
        certificate: (n_pm, n_pm) matrix Q_bar - mu J_bar - Lambda (in the rotated
            frame) attaining the best gap, if requested. None otherwise.
    """

    __slots__ = (
        "is_optimal",
        "status",
        "best_suboptimality",
        "suboptimality_traj",
        "n_iterations",
        "primal_cost",
        "lower_bound",
        "certificate",
    )

    def __init__(
        self,
        status: str,
        suboptimality_traj: List[float],
        primal_cost: float,
        lower_bound: float,
        certificate: Optional[np.ndarray] = None,
    ):
        self.status = status
        self.is_optimal = status == CertificationStatus.CERTIFIED
        self.suboptimality_traj = suboptimality_traj
        self.best_suboptimality = min(suboptimality_traj, default=float("inf"))
        self.n_iterations = len(suboptimality_traj)
        self.primal_cost = primal_cost
        self.lower_bound = lower_bound
        self.certificate = certificate

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(status={self.status!r}, "
            f"best_suboptimality={self.best_suboptimality:.3e}, "
            f"n_iterations={self.n_iterations})"
        )


class CertifierBase(ABC):
    """Optimality certification of a rotation estimated by robust registration."""

    DEFAULT_CFG: Dict = {
        # squared truncation threshold of the TLS cost.
        "cbar2": 1.0,
        # the points are normalized by this bound before certification.
        "noise_bound": 1.0,
    }

    def __init__(self, cfg: Optional[Dict] = None):
        if cfg is None:
            cfg = {}
        unknown = set(cfg) - set(self.DEFAULT_CFG)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        self.cfg = MappingProxyType({**self.DEFAULT_CFG, **cfg})
        self._check_cfg()

    def __call__(
        self,
        R: np.ndarray,
        src: np.ndarray,
        dst: np.ndarray,
        theta: np.ndarray,
    ) -> CertificationResult:
        return self.certify(R, src, dst, theta)

    def certify(
        self,
        R: np.ndarray,
        src: np.ndarray,
        dst: np.ndarray,
        theta: np.ndarray,
    ) -> CertificationResult:
        """Certify the global optimality of a rotation.

        Args:
            R: (3, 3) candidate rotation, such that dst ~ R @ src for the inliers.
            src: (3, n) source points.
            dst: (3, n) destination points.
            theta: (n,) inlier indicator. Either boolean (True for inliers) or with
                values in {+1, -1} (+1 for inliers).

        Returns:
            result: certification outcome.

        Raises:
            InvalidCertificationInput: if the inputs are inconsistent.
        """
        R, src, dst, theta_prepended = self.check_inputs(R, src, dst, theta)
        noise_bound = self.cfg["noise_bound"]
        return self._certify(R, src / noise_bound, dst / noise_bound, theta_prepended)

    @staticmethod
    def check_inputs(
        R, src, dst, theta
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Validate the inputs and build theta_prepended."""
        R = np.asarray(R, dtype=float)
        src = np.asarray(src, dtype=float)
        dst = np.asarray(dst, dtype=float)
        theta = np.asarray(theta)

        if src.ndim != 2 or src.shape[0] != 3:
            raise InvalidCertificationInput(
                f"src must be a (3, n) array. Got shape {src.shape}"
            )
        if dst.shape != src.shape:
            raise InvalidCertificationInput(
                f"src and dst must have the same shape. Got {src.shape} and {dst.shape}"
            )
        n = src.shape[1]
        if n < 1:
            raise InvalidCertificationInput("At least one correspondence is needed.")
        if theta.shape != (n,):
            raise InvalidCertificationInput(
                f"theta must be a ({n},) array. Got shape {theta.shape}"
            )
        if not (np.isfinite(src).all() and np.isfinite(dst).all()):
            raise InvalidCertificationInput("src and dst must be finite.")
        if theta.dtype != bool and not np.isin(theta, (-1, 1)).all():
            raise InvalidCertificationInput(
                "A non-boolean theta must only contain +1 (inlier) or -1 (outlier)."
            )
        valid, reason = is_rotation(R)
        if not valid:
            raise InvalidCertificationInput(reason)

        return R, src, dst, prepend_theta(theta)

    def _check_cfg(self):
        if self.cfg["cbar2"] <= 0:
            raise ValueError(f"cbar2 must be positive. Got {self.cfg['cbar2']}")
        if self.cfg["noise_bound"] <= 0:
            raise ValueError(
                f"noise_bound must be positive. Got {self.cfg['noise_bound']}"
            )

    @abstractmethod
    def _certify(
        self,
        R: np.ndarray,
        src: np.ndarray,
        dst: np.ndarray,
        theta_prepended: np.ndarray,
    ) -> CertificationResult:
        """Certification on validated inputs."""
        pass
