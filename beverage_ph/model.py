"""
Model Training Module
=====================

Trains the three pH regressors: linear regression, a decision tree and
gradient boosted trees.

Features:
    - One wrapper class for every model kind, carrying its feature list
    - Per-model feature selection (near-zero-variance exclusion, explicit drops)
    - Offline grid search with repeated k-fold cross-validation
    - Model persistence (save/load)
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Sequence
from datetime import datetime

import numpy as np
import pandas as pd
import joblib
from pandas.api.types import is_numeric_dtype
from sklearn.ensemble import GradientBoostingRegressor
from sklearn.linear_model import LinearRegression
from sklearn.model_selection import GridSearchCV, ParameterGrid, RepeatedKFold
from sklearn.tree import DecisionTreeRegressor

from .preprocessing import align_features

logger = logging.getLogger(__name__)

MODEL_KINDS = ('linear', 'tree', 'boosted')

DEFAULT_PARAMS = {
    'linear': {},
    'tree': {
        'max_depth': 6,
        'min_samples_leaf': 10
    },
    'boosted': {
        'n_estimators': 750,
        'max_depth': 6,
        'learning_rate': 0.02,
        'min_samples_leaf': 10,
        'subsample': 0.5
    }
}


def _create_estimator(kind: str, params: Dict[str, Any], random_state: Optional[int]):
    if kind == 'linear':
        return LinearRegression(**params)
    if kind == 'tree':
        return DecisionTreeRegressor(random_state=random_state, **params)
    if kind == 'boosted':
        return GradientBoostingRegressor(random_state=random_state, **params)
    raise ValueError(f"Unknown model kind: {kind}. Choose from: {', '.join(MODEL_KINDS)}")


def select_features(
    columns: Sequence[str],
    target: str,
    near_zero_variance: Sequence[str] = (),
    exclude_near_zero_variance: bool = False,
    drop_features: Sequence[str] = ()
) -> List[str]:
    """
    Decide the ordered feature list for one model.

    The target is always excluded.

    Args:
        columns: Columns of the training table
        target: Target column
        near_zero_variance: Columns flagged as near-zero variance
        exclude_near_zero_variance: Whether to drop the flagged columns
        drop_features: Additional columns to leave out

    Returns:
        Feature names in table order
    """
    excluded = {target, *drop_features}
    if exclude_near_zero_variance:
        excluded.update(near_zero_variance)
    return [col for col in columns if col not in excluded]


class RegressionModel:
    """
    A fitted pH regressor together with the exact feature set it was trained on.

    `kind` is one of 'linear', 'tree' or 'boosted'.
    """

    def __init__(
        self,
        kind: str = 'boosted',
        params: Optional[Dict[str, Any]] = None,
        feature_columns: Optional[List[str]] = None,
        random_state: Optional[int] = 42
    ):
        if kind not in MODEL_KINDS:
            raise ValueError(f"Unknown model kind: {kind}. Choose from: {', '.join(MODEL_KINDS)}")

        self.kind = kind
        self.params = dict(DEFAULT_PARAMS[kind] if params is None else params)
        self.feature_columns = list(feature_columns) if feature_columns is not None else None
        self.random_state = random_state

        self.model = None
        self.target: Optional[str] = None
        self.training_info: Dict[str, Any] = {}
        self._is_fitted = False

    def fit(self, df: pd.DataFrame, target: str = "PH") -> 'RegressionModel':
        """
        Train the model on a table holding features and target.

        Args:
            df: Training table
            target: Target column

        Returns:
            Self for method chaining

        Raises:
            ValueError: If the target is used as a feature or a feature is non-numeric
        """
        start_time = datetime.now()

        if self.feature_columns is None:
            self.feature_columns = [col for col in df.columns if col != target]
        if target in self.feature_columns:
            raise ValueError(f"Target '{target}' cannot be used as a feature")

        X = align_features(df, self.feature_columns)
        non_numeric = [col for col in X.columns if not is_numeric_dtype(X[col])]
        if non_numeric:
            raise ValueError(f"Non-numeric features cannot be used for training: {non_numeric}")
        if not is_numeric_dtype(df[target]):
            raise ValueError(f"Target '{target}' must be numeric")

        logger.info(f"Training {self.kind} model on X={X.shape}")
        if self.params:
            logger.info(f"Hyperparameters: {self.params}")

        self.model = _create_estimator(self.kind, self.params, self.random_state)
        self.model.fit(X, df[target])
        self.target = target

        end_time = datetime.now()
        self.training_info = {
            'training_duration_seconds': (end_time - start_time).total_seconds(),
            'n_samples': int(X.shape[0]),
            'n_features': int(X.shape[1]),
            'trained_at': end_time.isoformat(),
            'hyperparameters': dict(self.params)
        }
        self._is_fitted = True

        logger.info(
            f"{self.kind} model trained in {self.training_info['training_duration_seconds']:.2f} seconds"
        )
        return self

    def predict(self, df: pd.DataFrame) -> np.ndarray:
        """
        Predict pH for every row of `df`.

        Columns are selected and ordered to match training; extra columns
        are ignored.
        """
        if not self._is_fitted:
            raise ValueError("Model must be trained before prediction. Call fit() first.")

        return self.model.predict(align_features(df, self.feature_columns))

    def get_feature_importances(self) -> pd.Series:
        """
        Feature importances (trees) or absolute coefficients (linear), descending.
        """
        if not self._is_fitted:
            raise ValueError("Model must be trained first.")

        if self.kind == 'linear':
            values = np.abs(self.model.coef_)
        else:
            values = self.model.feature_importances_

        return pd.Series(values, index=self.feature_columns).sort_values(ascending=False)

    def save(self, filepath: str) -> None:
        """
        Save the trained model to disk.

        Args:
            filepath: Path to save the model
        """
        if not self._is_fitted:
            raise ValueError("Cannot save untrained model.")

        state = {
            'kind': self.kind,
            'params': self.params,
            'feature_columns': self.feature_columns,
            'random_state': self.random_state,
            'model': self.model,
            'target': self.target,
            'training_info': self.training_info,
            '_is_fitted': self._is_fitted
        }

        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(state, filepath)
        logger.info(f"Model saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> 'RegressionModel':
        """
        Load a trained model from disk.

        Args:
            filepath: Path to the saved model

        Returns:
            Loaded RegressionModel instance
        """
        state = joblib.load(filepath)

        model = cls(
            kind=state['kind'],
            params=state['params'],
            feature_columns=state['feature_columns'],
            random_state=state['random_state']
        )
        model.model = state['model']
        model.target = state['target']
        model.training_info = state['training_info']
        model._is_fitted = state['_is_fitted']

        logger.info(f"Model loaded from {filepath}")
        return model


def train_models(
    train_df: pd.DataFrame,
    config: Dict[str, Any],
    near_zero_variance: Sequence[str] = (),
    save_dir: Optional[str] = None
) -> Dict[str, RegressionModel]:
    """
    Train every enabled model from the `models` config section.

    Args:
        train_df: Training table (features + target)
        config: Configuration dictionary
        near_zero_variance: Columns flagged as near-zero variance
        save_dir: Directory to save each model as `<kind>.joblib` (optional)

    Returns:
        Dictionary of model kind to trained RegressionModel
    """
    target = config.get('preprocessing', {}).get('target', 'PH')
    random_state = config.get('random_state', 42)
    models_config = config.get('models', {kind: {} for kind in MODEL_KINDS})

    logger.info("=" * 60)
    logger.info("STARTING MODEL TRAINING")
    logger.info("=" * 60)

    models = {}
    for kind, model_config in models_config.items():
        model_config = model_config or {}
        if not model_config.get('enabled', True):
            logger.info(f"Skipping disabled model: {kind}")
            continue

        features = select_features(
            train_df.columns,
            target,
            near_zero_variance=near_zero_variance,
            exclude_near_zero_variance=model_config.get('exclude_near_zero_variance', False),
            drop_features=model_config.get('drop_features', [])
        )

        model = RegressionModel(
            kind=kind,
            params=model_config.get('params'),
            feature_columns=features,
            random_state=random_state
        )
        model.fit(train_df, target)

        if save_dir:
            model.save(str(Path(save_dir) / f"{kind}.joblib"))

        models[kind] = model

    logger.info("=" * 60)
    logger.info(f"MODEL TRAINING COMPLETE: {', '.join(models)}")
    logger.info("=" * 60)

    return models


def tune_boosted_model(
    X: pd.DataFrame,
    y: pd.Series,
    param_grid: Dict[str, List[Any]],
    n_splits: int = 5,
    n_repeats: int = 3,
    random_state: Optional[int] = 42,
    n_jobs: int = -1
) -> GridSearchCV:
    """
    Grid-search gradient boosting hyperparameters with repeated k-fold CV.

    This is an offline step; the pipeline trains with the fixed
    hyperparameters from the config.

    Args:
        X: Training features
        y: Training target
        param_grid: Mapping of parameter name to candidate values
        n_splits: Folds per repeat
        n_repeats: Number of repeats
        random_state: Seed for the folds and the estimator
        n_jobs: Parallel jobs for the search

    Returns:
        Fitted GridSearchCV (best_params_, cv_results_)

    Raises:
        ValueError: If the grid is empty or names unknown parameters
    """
    if not param_grid:
        raise ValueError("param_grid must name at least one parameter")

    valid = GradientBoostingRegressor().get_params()
    unknown = [name for name in param_grid if name not in valid]
    if unknown:
        raise ValueError(f"Unknown gradient boosting parameters: {unknown}")
    for name, values in param_grid.items():
        if not isinstance(values, (list, tuple)) or len(values) == 0:
            raise ValueError(f"Grid values for '{name}' must be a non-empty list")

    cv = RepeatedKFold(n_splits=n_splits, n_repeats=n_repeats, random_state=random_state)
    search = GridSearchCV(
        GradientBoostingRegressor(random_state=random_state),
        param_grid,
        cv=cv,
        scoring='neg_root_mean_squared_error',
        n_jobs=n_jobs
    )

    logger.info(
        f"Tuning gradient boosting: {len(ParameterGrid(param_grid))} candidates × "
        f"{n_splits * n_repeats} folds"
    )
    search.fit(X, y)

    logger.info(f"Best parameters: {search.best_params_}")
    logger.info(f"Best CV RMSE: {-search.best_score_:.4f}")
    return search


def print_model_summary(models: Dict[str, RegressionModel], top_n: int = 5) -> None:
    """
    Print a summary of the trained models.

    Args:
        models: Dictionary of trained models
        top_n: Number of most important features to list
    """
    print("\n" + "=" * 50)
    print("MODEL SUMMARY")
    print("=" * 50)

    for kind, model in models.items():
        print(f"\n{kind}: {type(model.model).__name__}")
        print(f"  - Features: {len(model.feature_columns)}")
        if model.params:
            print(f"  - Hyperparameters: {model.params}")
        if model.training_info:
            print(f"  - Duration: {model.training_info['training_duration_seconds']:.2f}s")
            print(f"  - Samples: {model.training_info['n_samples']}")
        importances = model.get_feature_importances().head(top_n)
        print(f"  - Top features: {', '.join(importances.index)}")

    print("=" * 50 + "\n")
