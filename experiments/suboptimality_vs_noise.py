import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
from tqdm import tqdm

from exp_utils import SyntheticData, inlier_rotation
from quasar_cert import DRSCertifier

NREPEATS = 20
NPOINTS = 40
OUTLIER_RATIO = 0.2
NOISE_LEVELS = (0.0, 0.005, 0.01, 0.02)
# the points are normalized by the noise bound before certification.
NOISE_BOUND = 0.05
MAX_ITERATIONS = 200


def main(dataset, certifier, outdir):
    """Sub-optimality gap trajectories and certification rate vs noise."""
    trajectories = {}
    certified_rate = np.zeros(len(NOISE_LEVELS))

    for i, noise_level in enumerate(tqdm(NOISE_LEVELS)):
        trajectories[noise_level] = []
        for _ in range(NREPEATS):
            data = dataset.generate_data(
                npoints=NPOINTS, noise_level=noise_level, outlier_ratio=OUTLIER_RATIO
            )
            R01_est = inlier_rotation(data)
            result = certifier(R01_est, data["src"], data["dst"], data["theta"])
            trajectories[noise_level].append(result.suboptimality_traj)
            certified_rate[i] += result.is_optimal / NREPEATS

    # plot results.
    fig, ax = plt.subplots(1, 2, figsize=(10, 5))
    colors = plt.cm.viridis(np.linspace(0, 1, len(NOISE_LEVELS)))
    for noise_level, color in zip(NOISE_LEVELS, colors):
        for k, traj in enumerate(trajectories[noise_level]):
            label = f"noise {noise_level}" if k == 0 else None
            ax[0].semilogy(traj, color=color, alpha=0.5, label=label)
    ax[0].axhline(certifier.cfg["sub_optimality"], color="k", linestyle="--")
    ax[0].set(xlabel="iteration", ylabel="sub-optimality gap")

    ax[1].plot(NOISE_LEVELS, certified_rate, marker="o", linewidth=2)
    ax[1].set(xlabel="noise level", ylabel="certified rate", ylim=(-0.05, 1.05))

    for axi in ax:
        axi.grid(True, linestyle="--", linewidth=0.5, color="gray")
    ax[0].legend()

    # save the plots
    filepath = outdir / f"suboptimality_vs_noise_npoints{NPOINTS}"
    fig.savefig(filepath.with_suffix(".png"), bbox_inches="tight")
    fig.savefig(filepath.with_suffix(".pdf"), bbox_inches="tight")


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    dataset = SyntheticData(seed=0)
    certifier = DRSCertifier(
        {"noise_bound": NOISE_BOUND, "max_iterations": MAX_ITERATIONS}
    )

    # output folder.
    outdir = Path(__file__).parent / "results" / "suboptimality_vs_noise"
    outdir.mkdir(parents=True, exist_ok=True)

    # run experiment
    main(dataset, certifier, outdir)
