"""
Imputation Module
=================

Multiple imputation of missing feature values by predictive mean matching.

Each round runs chained equations: every incomplete column is regressed on
all other columns with a BayesianRidge model, a coefficient vector is drawn
from the posterior for the rows being filled, and each missing cell copies
the observed value of a donor picked at random among the rows whose fitted
value is nearest. Rounds are independent and run in parallel; their
completed tables are averaged cell by cell.
"""

import logging
import os
from typing import Dict, Any, List, Optional

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from pandas.api.types import is_numeric_dtype
from sklearn.linear_model import BayesianRidge

from .exceptions import ImputationError, SchemaError

logger = logging.getLogger(__name__)


def _match_donors(
    fitted_observed: np.ndarray,
    fitted_missing: np.ndarray,
    observed_values: np.ndarray,
    donors: int,
    rng: np.random.Generator
) -> np.ndarray:
    """Pick an observed value for each missing row from its `donors` nearest neighbours."""
    distances = np.abs(fitted_missing[:, None] - fitted_observed[None, :])
    nearest = np.argsort(distances, axis=1, kind='stable')[:, :donors]
    choice = rng.integers(0, donors, size=len(fitted_missing))
    return observed_values[nearest[np.arange(len(fitted_missing)), choice]]


def pmm_impute_once(
    data: np.ndarray,
    max_iter: int = 50,
    donors: int = 5,
    seed: Optional[int] = None
) -> np.ndarray:
    """
    Complete a numeric matrix with one round of predictive mean matching.

    Args:
        data: 2D float array with NaN marking missing cells
        max_iter: Number of passes over the incomplete columns
        donors: Size of the donor pool for each missing cell
        seed: Seed for this round

    Returns:
        Completed copy of `data`; observed cells are untouched

    Raises:
        ImputationError: If an incomplete column has fewer than `donors` observed values
    """
    rng = np.random.default_rng(seed)
    filled = np.array(data, dtype=float, copy=True)
    missing = np.isnan(filled)
    incomplete = np.flatnonzero(missing.any(axis=0))

    observed_counts = (~missing).sum(axis=0)
    for j in incomplete:
        if observed_counts[j] < donors:
            raise ImputationError(
                f"Column {j} has {observed_counts[j]} observed values, "
                f"fewer than the {donors} donors needed"
            )

    # start from random draws of each column's observed values
    for j in incomplete:
        observed_values = filled[~missing[:, j], j]
        filled[missing[:, j], j] = rng.choice(observed_values, size=missing[:, j].sum())

    if filled.shape[1] < 2:
        return filled

    for _ in range(max_iter):
        for j in incomplete:
            obs = ~missing[:, j]
            predictors = np.delete(filled, j, axis=1)
            x_obs, x_mis = predictors[obs], predictors[~obs]
            y_obs = filled[obs, j]

            model = BayesianRidge()
            model.fit(x_obs, y_obs)

            beta = rng.multivariate_normal(model.coef_, model.sigma_)
            fitted_observed = model.predict(x_obs)
            fitted_missing = (x_mis - x_obs.mean(axis=0)) @ beta + y_obs.mean()

            filled[~obs, j] = _match_donors(
                fitted_observed, fitted_missing, y_obs, donors, rng
            )

    return filled


class MultipleImputer:
    """
    Runs several independent predictive-mean-matching rounds and averages them.

    Columns without missing values are passed through unchanged.
    """

    def __init__(
        self,
        n_imputations: int = 5,
        max_iter: int = 50,
        donors: int = 5,
        random_state: Optional[int] = None,
        n_jobs: Optional[int] = None,
        reserve_cpus: int = 2
    ):
        """
        Initialize the imputer.

        Args:
            n_imputations: Number of completed tables to produce
            max_iter: Chained-equation passes per round
            donors: Donor pool size for mean matching
            random_state: Seed from which every round's seed is derived
            n_jobs: Worker processes (default: CPU count minus `reserve_cpus`)
            reserve_cpus: CPUs left free when `n_jobs` is not given
        """
        if n_imputations < 1:
            raise ValueError(f"n_imputations must be at least 1, got {n_imputations}")
        if donors < 1:
            raise ValueError(f"donors must be at least 1, got {donors}")

        self.n_imputations = n_imputations
        self.max_iter = max_iter
        self.donors = donors
        self.random_state = random_state
        self.n_jobs = n_jobs
        self.reserve_cpus = reserve_cpus

        self.imputations_: List[pd.DataFrame] = []
        self.imputed_columns_: List[str] = []
        self.missing_counts_: Dict[str, int] = {}
        self._is_fitted = False

    @classmethod
    def from_config(cls, config: Dict[str, Any], random_state: Optional[int] = None) -> 'MultipleImputer':
        """Build an imputer from the `imputation` config section."""
        return cls(
            n_imputations=config.get('n_imputations', 5),
            max_iter=config.get('max_iter', 50),
            donors=config.get('donors', 5),
            random_state=random_state,
            n_jobs=config.get('n_jobs'),
            reserve_cpus=config.get('reserve_cpus', 2)
        )

    def _effective_n_jobs(self) -> int:
        if self.n_jobs is not None:
            return max(1, min(self.n_jobs, self.n_imputations))
        available = (os.cpu_count() or 1) - self.reserve_cpus
        return max(1, min(available, self.n_imputations))

    def round_seeds(self) -> List[int]:
        """One seed per round, derived deterministically from `random_state`."""
        states = np.random.SeedSequence(self.random_state).generate_state(self.n_imputations)
        return [int(s) for s in states]

    def _check_input(self, df: pd.DataFrame) -> None:
        non_numeric = [col for col in df.columns if not is_numeric_dtype(df[col])]
        if non_numeric:
            raise SchemaError(f"Imputation requires numeric columns; got non-numeric {non_numeric}")

        observed = df.notna().sum()
        for col in self.imputed_columns_:
            if observed[col] < self.donors:
                raise ImputationError(
                    f"Column '{col}' has {observed[col]} observed values, "
                    f"fewer than the {self.donors} donors needed"
                )

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Impute every missing cell of `df`.

        Args:
            df: Numeric feature table (target excluded)

        Returns:
            Completed table with the same index and column order

        Raises:
            SchemaError: If any column is non-numeric
            ImputationError: If a column has too few observed values or any round fails
        """
        missing_counts = df.isnull().sum()
        self.missing_counts_ = {col: int(n) for col, n in missing_counts.items() if n > 0}
        self.imputed_columns_ = list(self.missing_counts_)
        self._check_input(df)

        self.imputations_ = []
        self._is_fitted = False

        result = df.copy()
        if not self.imputed_columns_:
            logger.info("No missing values; imputation skipped")
            self._is_fitted = True
            return result

        n_jobs = self._effective_n_jobs()
        logger.info("=" * 60)
        logger.info("STARTING IMPUTATION")
        logger.info("=" * 60)
        logger.info(f"Imputing {sum(self.missing_counts_.values())} cells in {len(self.imputed_columns_)} columns")
        logger.info(f"  - rounds: {self.n_imputations}")
        logger.info(f"  - max_iter: {self.max_iter}")
        logger.info(f"  - donors: {self.donors}")
        logger.info(f"  - workers: {n_jobs}")

        data = df.to_numpy(dtype=float)
        try:
            completed = Parallel(n_jobs=n_jobs)(
                delayed(pmm_impute_once)(data, self.max_iter, self.donors, seed)
                for seed in self.round_seeds()
            )
        except ImputationError:
            raise
        except Exception as exc:
            raise ImputationError(f"Imputation round failed: {exc}") from exc

        self.imputations_ = [
            pd.DataFrame(values, index=df.index, columns=df.columns) for values in completed
        ]

        positions = [df.columns.get_loc(col) for col in self.imputed_columns_]
        averaged = np.mean([values[:, positions] for values in completed], axis=0)
        for i, col in enumerate(self.imputed_columns_):
            result[col] = averaged[:, i]

        self._is_fitted = True
        logger.info("IMPUTATION COMPLETE")
        return result


def print_imputation_summary(imputer: MultipleImputer) -> None:
    """
    Print which columns were imputed and how many cells each.

    Args:
        imputer: Fitted MultipleImputer
    """
    print("\n" + "=" * 50)
    print("IMPUTATION SUMMARY")
    print("=" * 50)
    print(f"Rounds: {imputer.n_imputations} | Iterations: {imputer.max_iter} | Donors: {imputer.donors}")
    if not imputer.missing_counts_:
        print("No missing values found.")
    for col, count in sorted(imputer.missing_counts_.items(), key=lambda x: -x[1]):
        print(f"  {col:<20} {count:>6} cells")
    print("=" * 50 + "\n")
