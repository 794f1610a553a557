from typing import Dict

import numpy as np
from scipy.spatial.transform import Rotation as R


class SyntheticData:
    """Data generation for robust registration, following the setup of [1, Sec. 7].

    The source points are sampled in a cube, rotated, and perturbed with isotropic
    Gaussian noise. A fraction of them are replaced by random outliers.

    [1] TEASER: Fast and Certifiable Point Cloud Registration, H. Yang et al.
    """

    def __init__(self, seed=0, box_size=1.0) -> None:
        self.rng = np.random.default_rng(seed)
        self.box_size = box_size

    def generate_data(self, npoints=40, noise_level=0.01, outlier_ratio=0.0):
        """Generate synthetic data."""
        rotvec = self.rng.uniform(-np.pi, np.pi, 3) / np.sqrt(3)
        R01 = R.from_rotvec(rotvec).as_matrix()

        src = self.rng.uniform(-self.box_size, self.box_size, (3, npoints))
        dst = R01 @ src + self.rng.normal(0.0, noise_level, (3, npoints))

        n_outliers = int(round(outlier_ratio * npoints))
        theta = np.ones(npoints, dtype=bool)
        if n_outliers > 0:
            idx = self.rng.choice(npoints, n_outliers, replace=False)
            dst[:, idx] = self.rng.uniform(
                -2 * self.box_size, 2 * self.box_size, (3, n_outliers)
            )
            theta[idx] = False

        return {"src": src, "dst": dst, "R01": R01, "theta": theta}


def inlier_rotation(data: Dict[str, np.ndarray]) -> np.ndarray:
    """Least-squares rotation of the inliers (Kabsch/Horn), which is a stationary
    point of the TLS cost for the given labeling."""
    theta = data["theta"]
    src, dst = data["src"][:, theta], data["dst"][:, theta]
    U, _, Vt = np.linalg.svd(dst @ src.T)
    # avoid reflections.
    S = np.diag([1.0, 1.0, np.sign(np.linalg.det(U @ Vt))])
    return U @ S @ Vt
