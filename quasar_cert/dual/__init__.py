from quasar_cert.dual.initial_guess import get_lambda_guess
from quasar_cert.dual.projection import (
    get_cached_linear_projection,
    get_linear_projection,
    get_optimal_dual_projection,
    project_to_affine_subspace,
)
