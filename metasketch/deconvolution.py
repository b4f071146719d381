"""Strain abundance estimation by Bayesian mixture modelling and projected gradient descent."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

DEFAULT_MCMC_ITERATIONS = 10_000
DEFAULT_MIN_ABUNDANCE = 0.01
DEFAULT_MAX_ITERATIONS = 1000

_PERTURBATION_SCALE = 0.1
_BURNIN_FRACTION = 5
_THIN = 10
_STEP_SIZE = 0.01
_LOG_EPSILON = 1e-10


class DimensionMismatchError(ValueError):
    """Raised when two dimensions that must agree do not."""

    def __init__(self, found: int, expected: int) -> None:
        super().__init__(
            f"Invalid dimensions: observed features {found} != signature features {expected}"
        )
        self.found = found
        self.expected = expected


@dataclass
class StrainAbundanceResult:
    """Posterior summary of strain abundances."""

    abundances: dict[str, tuple[float, float]]
    effective_sample_size: float
    goodness_of_fit: float


class StrainMixtureModel:
    """Mixture of strain signatures whose weights are sampled with Metropolis-Hastings."""

    def __init__(
        self,
        signatures: Sequence[Sequence[float]] | np.ndarray,
        strain_ids: Sequence[str],
        abundance_prior: Sequence[float] | None = None,
        mcmc_iterations: int | None = None,
        seed: int | None = None,
    ) -> None:
        matrix = np.asarray(signatures, dtype=float)
        if matrix.ndim != 2:
            raise ValueError("signatures must be a 2-D (features x strains) matrix")
        self.n_features, self.n_strains = matrix.shape
        self.signatures = matrix
        self.strain_ids = list(strain_ids)
        if len(self.strain_ids) != self.n_strains:
            raise DimensionMismatchError(len(self.strain_ids), self.n_strains)

        if abundance_prior is None:
            self.abundance_prior = [1.0] * self.n_strains
        else:
            prior = [float(p) for p in abundance_prior]
            if len(prior) != self.n_strains:
                raise DimensionMismatchError(len(prior), self.n_strains)
            self.abundance_prior = prior

        iterations = DEFAULT_MCMC_ITERATIONS if mcmc_iterations is None else mcmc_iterations
        if iterations <= 0:
            raise ValueError("mcmc_iterations must be greater than 0")
        self.mcmc_iterations = iterations
        self.mcmc_burnin = iterations // _BURNIN_FRACTION
        self.mcmc_thin = _THIN
        self.rng = np.random.default_rng(0 if seed is None else seed)

    def _log_likelihood(self, observed: np.ndarray, abundances: np.ndarray) -> float:
        expected = self.signatures @ abundances
        positive = expected > 0.0
        return float(
            np.sum(observed[positive] * np.log(expected[positive]) - expected[positive])
        )

    def _propose(self, current: np.ndarray) -> np.ndarray:
        noise = self.rng.uniform(-_PERTURBATION_SCALE, _PERTURBATION_SCALE, size=current.shape)
        proposal = np.maximum(current + noise, 0.0)
        total = proposal.sum()
        if total > 0.0:
            proposal = proposal / total
        return proposal

    def estimate_abundances(
        self, observed: Sequence[float] | np.ndarray
    ) -> StrainAbundanceResult:
        """Sample abundances given observed feature counts and summarise the posterior.

        Each strain gets its mean abundance and the width of its 95% credible interval.
        """
        data = np.asarray(observed, dtype=float).ravel()
        if data.size != self.n_features:
            raise DimensionMismatchError(data.size, self.n_features)

        total = data.sum()
        observed_norm = data / total if total > 0.0 else data.copy()

        if self.n_strains:
            current = np.full(self.n_strains, 1.0 / self.n_strains)
        else:
            current = np.zeros(0)

        samples: list[np.ndarray] = []
        log_likelihoods: list[float] = []
        for iteration in range(self.mcmc_iterations):
            proposal = self._propose(current)
            current_ll = self._log_likelihood(observed_norm, current)
            proposal_ll = self._log_likelihood(observed_norm, proposal)

            log_ratio = proposal_ll - current_ll
            random_log = math.log(self.rng.uniform(0.0, 1.0) + _LOG_EPSILON)
            if log_ratio > 0.0 or random_log < log_ratio:
                current = proposal

            if iteration >= self.mcmc_burnin and (iteration - self.mcmc_burnin) % self.mcmc_thin == 0:
                samples.append(current.copy())
                log_likelihoods.append(current_ll)

        return self._summarise(samples, log_likelihoods)

    def _summarise(
        self, samples: list[np.ndarray], log_likelihoods: list[float]
    ) -> StrainAbundanceResult:
        n_samples = len(samples)
        stacked = np.vstack(samples) if samples else np.zeros((0, self.n_strains))
        lower_idx = int(0.025 * n_samples)
        upper_idx = int(0.975 * n_samples)

        abundances: dict[str, tuple[float, float]] = {}
        for column, strain_id in enumerate(self.strain_ids):
            values = np.sort(stacked[:, column])
            mean = float(values.sum() / n_samples)
            interval = float(values[upper_idx] - values[lower_idx])
            abundances[strain_id] = (mean, interval)

        return StrainAbundanceResult(
            abundances=abundances,
            effective_sample_size=float(n_samples),
            goodness_of_fit=float(sum(log_likelihoods) / len(log_likelihoods)),
        )


@dataclass
class StrainDeconvolution:
    """Estimates strain proportions of a sample by non-negative projected gradient descent."""

    reference_signatures: list[np.ndarray]
    reference_ids: list[str]
    min_abundance: float = DEFAULT_MIN_ABUNDANCE
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    _matrix: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.reference_signatures = [
            np.asarray(sig, dtype=float).ravel() for sig in self.reference_signatures
        ]
        self.reference_ids = list(self.reference_ids)
        if len(self.reference_signatures) != len(self.reference_ids):
            raise ValueError(
                f"Number of signatures ({len(self.reference_signatures)}) does not match "
                f"number of IDs ({len(self.reference_ids)})"
            )
        if not self.reference_signatures:
            raise ValueError("No reference signatures provided")
        if self.min_abundance is None:
            self.min_abundance = DEFAULT_MIN_ABUNDANCE
        if self.max_iterations is None:
            self.max_iterations = DEFAULT_MAX_ITERATIONS

    def estimate_abundances(self, sample_profile: Sequence[float] | np.ndarray) -> dict[str, float]:
        """Return strain id -> abundance for strains at or above ``min_abundance``."""
        profile = np.asarray(sample_profile, dtype=float).ravel()
        for sig in self.reference_signatures:
            if sig.size != profile.size:
                raise DimensionMismatchError(profile.size, sig.size)
        matrix = np.column_stack(self.reference_signatures)

        n_strains = len(self.reference_signatures)
        abundances = np.full(n_strains, 1.0 / n_strains)
        for _ in range(self.max_iterations):
            residual = profile - matrix @ abundances
            gradient = matrix.T @ residual
            abundances = np.maximum(abundances + _STEP_SIZE * gradient, 0.0)
            total = abundances.sum()
            if total > 0.0:
                abundances = abundances / total

        return {
            strain_id: float(value)
            for strain_id, value in zip(self.reference_ids, abundances)
            if value >= self.min_abundance
        }