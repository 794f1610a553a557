from pathlib import Path

import perfplot

from exp_utils import SyntheticData, inlier_rotation
from quasar_cert import DRSCertifier
from quasar_cert.dual.projection import get_linear_projection
from quasar_cert.utils import prepend_theta

NOISE_BOUND = 0.05


def sample_data(n):
    data = dataset.generate_data(npoints=n, noise_level=0.01, outlier_ratio=0.2)
    data["R01_est"] = inlier_rotation(data)
    return data


def certify(data):
    return certifier(data["R01_est"], data["src"], data["dst"], data["theta"])


def inverse_map(data):
    return get_linear_projection(prepend_theta(data["theta"]))


if __name__ == "__main__":
    dataset = SyntheticData(1)
    # a fixed number of iterations, so that runtimes are comparable.
    certifier = DRSCertifier(
        {
            "noise_bound": NOISE_BOUND,
            "max_iterations": 20,
            "sub_optimality": 0.0,
            "cache_inverse_map": False,
        }
    )

    labels = ["inverse map", "DRS certifier (20 iters.)"]
    n_to_test = [2**k for k in range(2, 8)]

    out = perfplot.bench(
        setup=lambda n: sample_data(n),
        kernels=[
            lambda data: inverse_map(data),
            lambda data: certify(data),
        ],
        labels=labels,
        n_range=n_to_test,
        xlabel="#correspondences",
        equality_check=None,  # set to None to disable "correctness" assertion
        show_progress=True,
    )

    print(f"n samples:\n{n_to_test}\n")
    for timing, label in zip(out.timings_s, labels):
        print(f"{label}:\n{timing}\n")

    out_dir = Path(__file__).parent / "results" / "runtimes"
    out_dir.mkdir(parents=True, exist_ok=True)
    filepath = str(out_dir / "runtimes")
    filepath_log = str(out_dir / "runtimes_log")

    for ext in [".png", ".pdf"]:
        out.save(
            filepath + ext,
            transparent=True,
            bbox_inches="tight",
            logy=False,
        )
        out.save(
            filepath_log + ext,
            transparent=True,
            bbox_inches="tight",
            logy=True,
        )
