"""Configuration for the two-stage TMLE pipeline.

Defaults of every entry-point option live here, so a deployment can override
them through ``TWO_STAGE_TMLE_*`` environment variables (or a ``.env`` file)
instead of passing them on every call. Nested fields use ``__`` as delimiter,
e.g. ``TWO_STAGE_TMLE_SAMPLING__CV_FOLDS=5``.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..ml.learners import resolve_learner_name

__all__ = [
    "DEFAULT_AUGMENTATION_LIBRARY",
    "DEFAULT_RARE_OUTCOME_LIBRARY",
    "DEFAULT_SAMPLING_LIBRARY",
    "LibraryConfig",
    "TwoStageTMLEConfig",
    "VALID_CONDITIONING_NAMES",
]

DEFAULT_SAMPLING_LIBRARY = ("glm", "gam", "glmnet", "bart")
DEFAULT_AUGMENTATION_LIBRARY = ("glm", "glmnet", "bart")
DEFAULT_RARE_OUTCOME_LIBRARY = ("glm", "glmnet", "bart")

VALID_CONDITIONING_NAMES = ("A", "W", "Y")


class LibraryConfig(BaseModel):
    """A Super Learner library with its cross-validation settings.

    Attributes:
        learners: Candidate learner names (registry names or R aliases)
        cv_folds: Number of cross-validation folds (V)
        discrete: Discrete (best single learner) vs. ensemble selection
    """

    learners: list[str] = Field(..., min_length=1, description="Candidate learners")
    cv_folds: int = Field(default=10, ge=2, description="Number of CV folds")
    discrete: bool = Field(default=False, description="Use discrete Super Learner")

    @field_validator("learners")
    @classmethod
    def validate_learners(cls, v: list[str]) -> list[str]:
        """Validate that every learner is registered."""
        for name in v:
            resolve_learner_name(name)
        return v


class TwoStageTMLEConfig(BaseSettings):
    """Defaults for the two-stage TMLE entry point."""

    model_config = SettingsConfigDict(
        env_prefix="TWO_STAGE_TMLE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    sampling: LibraryConfig = Field(
        default_factory=lambda: LibraryConfig(
            learners=list(DEFAULT_SAMPLING_LIBRARY), cv_folds=10, discrete=True
        ),
        description="Library for the sampling (missingness) probabilities pi",
    )
    augmentation: LibraryConfig = Field(
        default_factory=lambda: LibraryConfig(
            learners=list(DEFAULT_AUGMENTATION_LIBRARY), cv_folds=10, discrete=False
        ),
        description="Library for the stage-1 outcome regression augmenting W",
    )
    rare_outcome: LibraryConfig = Field(
        default_factory=lambda: LibraryConfig(
            learners=list(DEFAULT_RARE_OUTCOME_LIBRARY), cv_folds=20, discrete=True
        ),
        description="Conservative outcome regression library for rare outcomes",
    )
    cond_set_names: list[str] = Field(
        default_factory=lambda: list(VALID_CONDITIONING_NAMES),
        description="Predictors of stage-2 sampling",
    )
    q_family: Literal["gaussian", "binomial"] = Field(
        default="gaussian", description="Regression family for the outcome"
    )
    augment_w: bool = Field(
        default=True, description="Augment the sampling model with predicted outcomes"
    )
    random_state: Optional[int] = Field(
        default=None, description="Random seed for fold assignment and learners"
    )
    n_jobs: int = Field(default=1, description="Parallel jobs for cross-fitting")
    log_level: str = Field(default="INFO", description="Level used by setup_logging")

    @field_validator("cond_set_names")
    @classmethod
    def validate_cond_set_names(cls, v: list[str]) -> list[str]:
        """Validate conditioning-set names."""
        invalid = [name for name in v if name not in VALID_CONDITIONING_NAMES]
        if invalid:
            raise ValueError(
                "cond_set_names must be any combination of 'A', 'W', 'Y', "
                f"got {invalid}"
            )
        return v
