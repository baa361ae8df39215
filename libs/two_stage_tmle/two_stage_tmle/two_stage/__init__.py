"""Two-stage design TMLE pipeline."""

from .augmentation import evaluate_augmented_covariates
from .inputs import TwoStageData, normalize_inputs
from .pipeline import TwoStageTMLE, assemble_covariates, two_stage_tmle
from .results import TwoStageTMLEResult
from .sampling import (
    SamplingModelResult,
    estimate_sampling_probabilities,
    resolve_conditioning_set,
    validate_conditioning_set,
)
from .weights import (
    ObservationWeights,
    bound,
    compute_observation_weights,
    weight_diagnostics,
)

__all__ = [
    "ObservationWeights",
    "SamplingModelResult",
    "TwoStageData",
    "TwoStageTMLE",
    "TwoStageTMLEResult",
    "assemble_covariates",
    "bound",
    "compute_observation_weights",
    "estimate_sampling_probabilities",
    "evaluate_augmented_covariates",
    "normalize_inputs",
    "resolve_conditioning_set",
    "two_stage_tmle",
    "validate_conditioning_set",
    "weight_diagnostics",
]
