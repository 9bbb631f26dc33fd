"""
Prediction Module
=================

Applies the trained model to the evaluation workbook.

Features:
    - Same transform + imputation as the training data
    - Feature alignment to the trained model
    - Predictions attached to both the imputed and the original table
    - Two-sheet Excel export
"""

import logging
from pathlib import Path
from typing import Dict, Any, Optional

import numpy as np
import pandas as pd

from .imputation import MultipleImputer
from .model import RegressionModel
from .preprocessing import (
    DEFAULT_BRAND_COLUMN,
    DEFAULT_BRAND_LEVELS,
    DEFAULT_BRAND_PREFIX,
    DEFAULT_TARGET,
    transform_dataset,
)

logger = logging.getLogger(__name__)

IMPUTED_SHEET = "Imputed"
ORIGINAL_SHEET = "Original"


def predict_dataset(model: RegressionModel, features: pd.DataFrame) -> np.ndarray:
    """
    Predict pH for a prepared feature table.

    The table is aligned to the model's training features first, so a
    missing column fails before anything is predicted.
    """
    predictions = model.predict(features)
    logger.info(
        f"Predicted {len(predictions)} rows "
        f"(mean {np.mean(predictions):.4f}, range {np.min(predictions):.4f}-{np.max(predictions):.4f})"
    )
    return predictions


def attach_predictions(
    df: pd.DataFrame,
    predictions: np.ndarray,
    target: str = DEFAULT_TARGET
) -> pd.DataFrame:
    """
    Return a copy of `df` with `target` holding the predictions.

    An existing (empty) target column is overwritten in place; otherwise the
    column is appended.
    """
    if len(predictions) != len(df):
        raise ValueError(
            f"Got {len(predictions)} predictions for a table of {len(df)} rows"
        )

    result = df.copy()
    result[target] = np.asarray(predictions)
    return result


def export_predictions(
    imputed: pd.DataFrame,
    original: pd.DataFrame,
    output_path: str
) -> str:
    """
    Write both prediction tables to one Excel workbook.

    Args:
        imputed: Feature-engineered, imputed table with predictions
        original: Raw table with predictions (brand code kept as text)
        output_path: Path of the .xlsx file

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        imputed.to_excel(writer, index=False, sheet_name=IMPUTED_SHEET)
        original.to_excel(writer, index=False, sheet_name=ORIGINAL_SHEET)

    logger.info(f"Predictions exported to {output_path}")
    return str(output_path)


def run_final_prediction(
    model: RegressionModel,
    df: pd.DataFrame,
    config: Dict[str, Any],
    output_dir: Optional[str] = None
) -> Dict[str, Any]:
    """
    Execute the complete prediction workflow on the evaluation table.

    This function:
    1. Applies the training column transforms (target column dropped)
    2. Imputes missing values with the same settings as training
    3. Aligns features to the model and predicts
    4. Attaches predictions to the imputed and the original table
    5. Exports both as sheets of one workbook

    Args:
        model: Trained model
        df: Raw evaluation table
        config: Configuration dictionary
        output_dir: Directory for the workbook (default from config)

    Returns:
        Dictionary containing predictions, both tables and the workbook path
    """
    prep_config = config.get('preprocessing', {})
    target = prep_config.get('target', DEFAULT_TARGET)
    output_dir = output_dir or config.get('data', {}).get('predictions_path', 'data/predictions/')
    workbook_name = config.get('output', {}).get('workbook_name', 'ph_predictions.xlsx')

    logger.info("=" * 60)
    logger.info("STARTING FINAL PREDICTION")
    logger.info("=" * 60)

    transformed = transform_dataset(
        df,
        target=target,
        brand_column=prep_config.get('brand_column', DEFAULT_BRAND_COLUMN),
        brand_levels=prep_config.get('brand_levels', DEFAULT_BRAND_LEVELS),
        brand_prefix=prep_config.get('brand_prefix', DEFAULT_BRAND_PREFIX),
        require_target=False
    )

    imputer = MultipleImputer.from_config(
        config.get('imputation', {}), random_state=config.get('random_state', 42)
    )
    imputed = imputer.fit_transform(transformed)

    predictions = predict_dataset(model, imputed)

    imputed_out = attach_predictions(imputed, predictions, target)
    original_out = attach_predictions(df.reset_index(drop=True), predictions, target)

    workbook_path = export_predictions(
        imputed_out, original_out, str(Path(output_dir) / workbook_name)
    )

    result = {
        'predictions': predictions,
        'imputed': imputed_out,
        'original': original_out,
        'model_kind': model.kind,
        'workbook_path': workbook_path
    }

    logger.info("=" * 60)
    logger.info("PREDICTION COMPLETE")
    logger.info(f"  Rows predicted: {len(predictions)}")
    logger.info(f"  Output: {workbook_path}")
    logger.info("=" * 60)

    return result


def print_prediction_results(result: Dict[str, Any], head: int = 10) -> None:
    """
    Print formatted prediction results to console.

    Args:
        result: Result dictionary from run_final_prediction
        head: Number of predictions to list
    """
    predictions = result['predictions']

    print("\n" + "=" * 50)
    print(f"PREDICTION RESULTS ({result['model_kind']})")
    print("=" * 50)
    print(f"Rows predicted: {len(predictions)}")
    print(f"Mean pH: {np.mean(predictions):.4f} | Std: {np.std(predictions):.4f}")
    print(f"Range: {np.min(predictions):.4f} - {np.max(predictions):.4f}")
    print(f"\nFirst {min(head, len(predictions))} predictions:")
    for i, value in enumerate(predictions[:head]):
        print(f"  row {i:<5} {value:.4f}")
    print(f"\nWorkbook saved to: {result['workbook_path']}")
    print("=" * 50 + "\n")
