"""
Test Suite for Evaluation Module
================================

Tests for the metrics and the model comparison.
"""

import json

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from beverage_ph.evaluation import (
    calculate_metrics,
    compare_models,
    evaluate_model,
    exact_match_rate,
    mae,
    rmse,
    smape,
)


class ConstantModel:
    """Predicts the same value for every row."""

    def __init__(self, value):
        self.value = value

    def predict(self, df):
        return np.full(len(df), self.value)


class TestMetrics:
    """Tests for the individual metrics."""

    def test_rounding_match(self):
        """8.426 rounds to 8.43 and matches a true 8.43."""
        assert round(8.426, 2) == 8.43
        assert exact_match_rate([8.43], [8.426]) == 1.0

    def test_exact_match_fraction(self):
        y_true = [8.43, 8.50, 8.62, 8.10]
        y_pred = [8.426, 8.49, 8.6249, 8.30]

        assert exact_match_rate(y_true, y_pred) == pytest.approx(0.5)

    def test_rmse_at_least_mae(self):
        rng = np.random.default_rng(0)
        for _ in range(20):
            y_true = rng.normal(8.5, 0.2, 50)
            y_pred = y_true + rng.standard_t(3, 50) * 0.1

            assert mae(y_true, y_pred) >= 0
            assert rmse(y_true, y_pred) >= mae(y_true, y_pred)

    def test_rmse_at_least_mae_for_equal_errors(self):
        """Equal-sized errors make RMSE and MAE equal; RMSE never drops below."""
        rng = np.random.default_rng(0)
        for n in range(1, 200):
            y_true = rng.normal(8.5, 0.2, n)
            y_pred = y_true + rng.uniform(-0.3, 0.3)

            assert rmse(y_true, y_pred) >= mae(y_true, y_pred)
            metrics = calculate_metrics(y_true, y_pred)
            assert metrics["rmse"] >= metrics["mae"]

    def test_perfect_predictions(self):
        y = [8.1, 8.5, 8.9]
        metrics = calculate_metrics(y, y)

        assert metrics['rmse'] == 0
        assert metrics['mae'] == 0
        assert metrics['smape'] == 0
        assert metrics['accuracy'] == 1.0
        assert metrics['r2'] == pytest.approx(1.0)
        assert metrics['n_samples'] == 3

    def test_smape_value(self):
        # |10 - 8| / ((10 + 8) / 2) = 2 / 9
        assert smape([8.0], [10.0]) == pytest.approx(200 / 9)

    def test_smape_is_symmetric(self):
        assert smape([8.0, 9.0], [10.0, 8.5]) == pytest.approx(smape([10.0, 8.5], [8.0, 9.0]))

    def test_smape_zero_denominator(self):
        assert smape([0.0, 2.0], [0.0, 2.0]) == 0.0

    def test_constant_errors(self):
        metrics = calculate_metrics([8.0, 8.0], [8.1, 7.9])

        assert metrics['rmse'] == pytest.approx(0.1)
        assert metrics['mae'] == pytest.approx(0.1)


class TestCompareModels:
    """Tests for compare_models and evaluate_model."""

    @pytest.fixture
    def test_df(self):
        return pd.DataFrame({'Density': [1.0, 1.1, 1.2, 1.3], 'PH': [8.4, 8.5, 8.6, 8.5]})

    def test_ranked_by_rmse(self, test_df):
        models = {'far': ConstantModel(9.5), 'near': ConstantModel(8.5)}
        comparison = compare_models(models, test_df)

        assert list(comparison.index) == ['near', 'far']
        assert set(comparison.columns) >= {'rmse', 'mae', 'r2', 'smape', 'accuracy'}

    def test_evaluate_model_writes_metrics(self, test_df, tmp_path):
        models = {'far': ConstantModel(9.5), 'near': ConstantModel(8.5)}
        result = evaluate_model(models, test_df, output_dir=str(tmp_path))

        assert result['best_model'] == 'near'
        with open(result['metrics_file']) as f:
            saved = json.load(f)
        assert saved['best_model'] == 'near'
        assert saved['models']['near']['accuracy'] == pytest.approx(0.5)
        for name in result['figures']:
            assert (tmp_path / 'figures' / name).exists()

    def test_separate_figure_and_metric_dirs(self, test_df, tmp_path):
        models = {'near': ConstantModel(8.5)}
        result = evaluate_model(models, test_df, figures_dir=str(tmp_path / 'figs'),
                                metrics_dir=str(tmp_path / 'scores'))

        assert result['metrics_file'] == str(tmp_path / 'scores' / 'evaluation_metrics.json')
        for name in result['figures']:
            assert (tmp_path / 'figs' / name).exists()
        assert not (tmp_path / 'figs' / 'figures').exists()

if __name__ == "__main__":
    pytest.main([__file__, "-v"])
