"""
Model Evaluation Module
=======================

Evaluation metrics and diagnostic plots for the pH regressors.

Features:
    - RMSE, MAE, R², SMAPE and rounded exact-match rate
    - Side-by-side model comparison
    - Actual vs Predicted and residual plots
    - Evaluation report generation
"""

import logging
import json
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from sklearn.metrics import mean_squared_error, mean_absolute_error, r2_score

logger = logging.getLogger(__name__)


def mae(y_true, y_pred) -> float:
    """Mean absolute error."""
    return float(mean_absolute_error(y_true, y_pred))


def rmse(y_true, y_pred) -> float:
    """
    Root mean squared error.

    Never reported below the MAE of the same errors; with equal-sized errors
    the two agree exactly and only float rounding separates them.
    """
    root_mse = float(np.sqrt(mean_squared_error(y_true, y_pred)))
    return max(root_mse, mae(y_true, y_pred))


def smape(y_true, y_pred) -> float:
    """
    Symmetric mean absolute percentage error, in percent.

    Each error is divided by the mean of |actual| and |predicted|; rows where
    both are zero contribute zero.
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    denominator = (np.abs(y_true) + np.abs(y_pred)) / 2
    diff = np.abs(y_pred - y_true)
    ratio = np.divide(diff, denominator, out=np.zeros_like(diff), where=denominator != 0)
    return float(np.mean(ratio) * 100)


def exact_match_rate(y_true, y_pred, decimals: int = 2) -> float:
    """
    Fraction of rows where the prediction rounded to `decimals` equals the truth.

    Both sides are rounded, so 8.426 counts as a match for a true 8.43.
    """
    rounded_true = np.round(np.asarray(y_true, dtype=float), decimals)
    rounded_pred = np.round(np.asarray(y_pred, dtype=float), decimals)
    tolerance = 10.0 ** -(decimals + 3)
    return float(np.mean(np.abs(rounded_true - rounded_pred) < tolerance))


def calculate_metrics(y_true, y_pred) -> Dict[str, float]:
    """
    Calculate all evaluation metrics for one model.

    Args:
        y_true: Ground truth pH
        y_pred: Predicted pH

    Returns:
        Dictionary with rmse, mae, r2, smape, accuracy and n_samples
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    return {
        'rmse': rmse(y_true, y_pred),
        'mae': mae(y_true, y_pred),
        'r2': float(r2_score(y_true, y_pred)) if len(y_true) > 1 else float('nan'),
        'smape': smape(y_true, y_pred),
        'accuracy': exact_match_rate(y_true, y_pred),
        'n_samples': int(len(y_true))
    }


def compare_models(
    models: Dict[str, Any],
    test_df: pd.DataFrame,
    target: str = "PH"
) -> pd.DataFrame:
    """
    Score every model on the same held-out table.

    Args:
        models: Dictionary of name to fitted model (anything with `predict`)
        test_df: Held-out table with the true target
        target: Target column

    Returns:
        DataFrame indexed by model name, sorted by RMSE ascending
    """
    rows = {}
    for name, model in models.items():
        rows[name] = calculate_metrics(test_df[target], model.predict(test_df))

    return pd.DataFrame.from_dict(rows, orient='index').sort_values('rmse', kind='stable')


def plot_actual_vs_predicted(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    title: str = 'pH',
    figsize: Tuple[int, int] = (7, 6),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Scatter of actual against predicted pH.

    Args:
        y_true: Ground truth values
        y_pred: Predicted values
        title: Plot title
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    fig, ax = plt.subplots(figsize=figsize)
    ax.scatter(y_true, y_pred, alpha=0.5, s=20)

    min_val = min(y_true.min(), y_pred.min())
    max_val = max(y_true.max(), y_pred.max())
    ax.plot([min_val, max_val], [min_val, max_val], 'r--', linewidth=2, label='Perfect')

    ax.set_xlabel('Actual')
    ax.set_ylabel('Predicted')
    ax.set_title(
        f'{title}\nR²={r2_score(y_true, y_pred):.4f}, RMSE={rmse(y_true, y_pred):.4f}',
        fontsize=11, fontweight='bold'
    )
    ax.legend(loc='upper left', fontsize=8)
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Actual vs Predicted plot saved to {save_path}")

    return fig


def plot_residuals(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    title: str = 'pH',
    figsize: Tuple[int, int] = (12, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Residual histogram and residuals against fitted values.

    Args:
        y_true: Ground truth values
        y_pred: Predicted values
        title: Plot title
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    residuals = np.asarray(y_true, dtype=float) - np.asarray(y_pred, dtype=float)

    fig, axes = plt.subplots(1, 2, figsize=figsize)

    sns.histplot(residuals, kde=True, ax=axes[0], bins=50, alpha=0.7)
    axes[0].axvline(0, color='red', linestyle='--', linewidth=2, label='Zero')
    axes[0].axvline(np.mean(residuals), color='green', linestyle='--',
                    linewidth=2, label=f'Mean: {np.mean(residuals):.4f}')
    axes[0].set_xlabel('Residual (Actual - Predicted)')
    axes[0].set_title(f'Std: {np.std(residuals):.4f}', fontsize=10, fontweight='bold')
    axes[0].legend(fontsize=8)

    axes[1].scatter(y_pred, residuals, alpha=0.5, s=15)
    axes[1].axhline(0, color='red', linestyle='--', linewidth=1.5)
    axes[1].set_xlabel('Predicted')
    axes[1].set_ylabel('Residual')
    axes[1].set_title('Residuals vs Fitted', fontsize=10, fontweight='bold')

    plt.suptitle(f'Residual Analysis - {title}', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Residuals plot saved to {save_path}")

    return fig


def evaluate_model(
    models: Dict[str, Any],
    test_df: pd.DataFrame,
    target: str = "PH",
    output_dir: str = "reports/",
    show_plots: bool = False,
    figures_dir: Optional[str] = None,
    metrics_dir: Optional[str] = None
) -> Dict[str, Any]:
    """
    Compare models on the test set and write metrics and figures.

    Args:
        models: Dictionary of trained models
        test_df: Held-out table with the true target
        target: Target column
        output_dir: Directory for output files
        show_plots: Whether to display plots interactively
        figures_dir: Figure directory (default: `output_dir`/figures)
        metrics_dir: Metrics directory (default: `output_dir`/metrics)

    Returns:
        Dictionary containing the comparison table, best model name,
        metrics and file paths
    """
    output_dir = Path(output_dir)
    figures_dir = Path(figures_dir) if figures_dir else output_dir / "figures"
    metrics_dir = Path(metrics_dir) if metrics_dir else output_dir / "metrics"

    figures_dir.mkdir(parents=True, exist_ok=True)
    metrics_dir.mkdir(parents=True, exist_ok=True)

    logger.info("=" * 60)
    logger.info("STARTING MODEL EVALUATION")
    logger.info("=" * 60)

    comparison = compare_models(models, test_df, target)
    best = comparison.index[0]

    metrics = comparison.to_dict(orient='index')
    metrics_file = metrics_dir / "evaluation_metrics.json"
    with open(metrics_file, 'w') as f:
        json.dump({'models': metrics, 'best_model': best}, f, indent=2)
    logger.info(f"Metrics saved to {metrics_file}")

    figures = []
    for name, model in models.items():
        y_pred = model.predict(test_df)

        plot_actual_vs_predicted(
            test_df[target], y_pred, title=name,
            save_path=str(figures_dir / f"eval_{name}_actual_vs_predicted.png")
        )
        figures.append(f"eval_{name}_actual_vs_predicted.png")

        plot_residuals(
            test_df[target], y_pred, title=name,
            save_path=str(figures_dir / f"eval_{name}_residuals.png")
        )
        figures.append(f"eval_{name}_residuals.png")

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    logger.info("=" * 60)
    logger.info("EVALUATION COMPLETE")
    logger.info(f"  Best model: {best}")
    logger.info(f"  RMSE: {metrics[best]['rmse']:.6f}")
    logger.info(f"  MAE: {metrics[best]['mae']:.6f}")
    logger.info("=" * 60)

    return {
        'comparison': comparison,
        'best_model': best,
        'metrics': metrics,
        'figures': figures,
        'metrics_file': str(metrics_file)
    }


def print_evaluation_report(comparison: pd.DataFrame) -> None:
    """
    Print the model comparison table to console.

    Args:
        comparison: DataFrame from compare_models
    """
    print("\n" + "=" * 70)
    print("MODEL EVALUATION REPORT")
    print("=" * 70)
    print(f"{'Model':<12} {'RMSE':<10} {'MAE':<10} {'R²':<10} {'SMAPE (%)':<11} {'Accuracy':<10}")
    print("-" * 70)

    for name, row in comparison.iterrows():
        print(f"{name:<12} {row['rmse']:<10.4f} {row['mae']:<10.4f} {row['r2']:<10.4f} "
              f"{row['smape']:<11.3f} {row['accuracy']:<10.3f}")

    print("-" * 70)
    print(f"Best model by RMSE: {comparison.index[0]}")
    print("Accuracy is the share of predictions equal to the true pH at 2 decimals.")
    print("=" * 70 + "\n")
