"""Shared fixtures: synthetic beverage process tables."""

import numpy as np
import pandas as pd
import pytest


def make_raw_data(n_rows: int = 200, seed: int = 0, n_missing_target: int = 4) -> pd.DataFrame:
    """
    Build a raw table shaped like the process workbook.

    Column names carry spaces, the brand code is text with some blanks, a few
    feature cells and `n_missing_target` targets are missing, and
    'Hyd Pressure1' is almost always zero.
    """
    rng = np.random.default_rng(seed)

    carb_volume = rng.normal(5.37, 0.1, n_rows)
    mnf_flow = rng.normal(24.0, 120.0, n_rows)
    density = rng.normal(1.17, 0.38, n_rows)
    hyd_pressure = np.where(rng.random(n_rows) < 0.97, 0.0, rng.normal(12.0, 3.0, n_rows))

    df = pd.DataFrame({
        'Brand Code': rng.choice(['A', 'B', 'C', 'D'], size=n_rows).astype(object),
        'Carb Volume': carb_volume,
        'Fill Ounces': rng.normal(23.97, 0.09, n_rows),
        'PC Volume': rng.normal(0.28, 0.06, n_rows),
        'Carb Pressure': carb_volume * 12.5 + rng.normal(0, 1.0, n_rows),
        'Carb Temp': rng.normal(141.0, 4.0, n_rows),
        'Mnf Flow': mnf_flow,
        'Hyd Pressure1': hyd_pressure,
        'Density': density,
        'PH': 8.55 + 0.0008 * mnf_flow - 0.05 * density + rng.normal(0, 0.1, n_rows),
    })

    df.loc[rng.choice(n_rows, size=max(1, n_rows // 25), replace=False), 'Brand Code'] = np.nan
    for col, share in [('Carb Volume', 0.03), ('Fill Ounces', 0.05), ('PC Volume', 0.02),
                       ('Carb Temp', 0.04), ('Mnf Flow', 0.02), ('Density', 0.01)]:
        rows = rng.choice(n_rows, size=max(1, int(n_rows * share)), replace=False)
        df.loc[rows, col] = np.nan

    if n_missing_target:
        df.loc[rng.choice(n_rows, size=n_missing_target, replace=False), 'PH'] = np.nan

    return df


@pytest.fixture
def raw_data():
    """Synthetic training workbook contents."""
    return make_raw_data()


@pytest.fixture
def small_config(tmp_path):
    """Fast configuration for end-to-end tests."""
    return {
        'data': {'predictions_path': str(tmp_path / 'predictions')},
        'preprocessing': {
            'target': 'PH',
            'brand_column': 'BrandCode',
            'brand_levels': ['A', 'B', 'C', 'D'],
            'brand_prefix': 'Brand',
            'train_fraction': 0.7
        },
        'imputation': {'n_imputations': 2, 'max_iter': 3, 'donors': 5, 'n_jobs': 1},
        'models': {
            'linear': {'exclude_near_zero_variance': True},
            'tree': {'params': {'max_depth': 4, 'min_samples_leaf': 5}},
            'boosted': {
                'params': {
                    'n_estimators': 30,
                    'max_depth': 3,
                    'learning_rate': 0.1,
                    'min_samples_leaf': 5,
                    'subsample': 0.5
                }
            }
        },
        'random_state': 500,
        'output': {'workbook_name': 'ph_predictions.xlsx'}
    }
