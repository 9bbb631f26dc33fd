"""
Exploratory Data Analysis (EDA) Module
======================================

Provides analysis and visualization of the process measurements.

Functions:
    - missingness_table: Missing count and percentage per column
    - near_zero_variance: Flag near-constant predictors
    - outlier_counts: IQR and z-score outlier counts per column
    - plot_missingness: Bar chart of missing percentages
    - plot_correlation_matrix: Correlation heatmap
    - plot_distributions: Histograms with normality tests
    - plot_box_plots: Normalized box plots for outlier detection
    - generate_eda_report: Full EDA report with all visualizations
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from scipy import stats

logger = logging.getLogger(__name__)

plt.style.use('seaborn-v0_8-whitegrid')
sns.set_palette("husl")


def missingness_table(df: pd.DataFrame) -> pd.DataFrame:
    """
    Count missing values per column.

    Args:
        df: DataFrame to inspect

    Returns:
        DataFrame indexed by column with `missing` and `percent`, sorted descending
    """
    counts = df.isnull().sum()
    table = pd.DataFrame({
        'missing': counts.astype(int),
        'percent': counts / len(df) * 100 if len(df) else 0.0
    })
    return table.sort_values('missing', ascending=False, kind='stable')


def near_zero_variance(
    df: pd.DataFrame,
    freq_cut: float = 95 / 5,
    unique_cut: float = 10.0
) -> pd.DataFrame:
    """
    Identify near-zero-variance numeric predictors.

    A column is flagged when the ratio of its most common value to the second
    most common exceeds `freq_cut` and its distinct values make up no more
    than `unique_cut` percent of the rows, or when it has a single value.

    Args:
        df: DataFrame to inspect
        freq_cut: Threshold on the frequency ratio
        unique_cut: Threshold on the percentage of distinct values

    Returns:
        DataFrame indexed by column with freq_ratio, percent_unique,
        zero_var and nzv
    """
    rows = {}
    for col in df.select_dtypes(include=[np.number]).columns:
        values = df[col].dropna()
        counts = values.value_counts()

        if len(counts) > 1:
            freq_ratio = counts.iloc[0] / counts.iloc[1]
        else:
            freq_ratio = 0.0

        percent_unique = len(counts) / len(values) * 100 if len(values) else 0.0
        zero_var = len(counts) <= 1

        rows[col] = {
            'freq_ratio': float(freq_ratio),
            'percent_unique': float(percent_unique),
            'zero_var': bool(zero_var),
            'nzv': bool(zero_var or (freq_ratio > freq_cut and percent_unique <= unique_cut))
        }

    return pd.DataFrame.from_dict(
        rows, orient='index',
        columns=['freq_ratio', 'percent_unique', 'zero_var', 'nzv']
    )


def near_zero_variance_columns(df: pd.DataFrame, **kwargs) -> List[str]:
    """Names of the columns flagged by `near_zero_variance`."""
    table = near_zero_variance(df, **kwargs)
    return table.index[table['nzv']].tolist()


def outlier_counts(df: pd.DataFrame, z_threshold: float = 3.0) -> pd.DataFrame:
    """
    Count outliers per numeric column by the 1.5×IQR rule and by |z|.

    Args:
        df: DataFrame to inspect
        z_threshold: Absolute z-score above which a value is an outlier

    Returns:
        DataFrame indexed by column with `iqr_outliers` and `z_outliers`
    """
    rows = {}
    for col in df.select_dtypes(include=[np.number]).columns:
        values = df[col].dropna()
        q1, q3 = values.quantile(0.25), values.quantile(0.75)
        iqr = q3 - q1
        iqr_out = ((values < q1 - 1.5 * iqr) | (values > q3 + 1.5 * iqr)).sum()

        if values.std() > 0:
            z_out = (np.abs(stats.zscore(values)) > z_threshold).sum()
        else:
            z_out = 0

        rows[col] = {'iqr_outliers': int(iqr_out), 'z_outliers': int(z_out)}

    return pd.DataFrame.from_dict(rows, orient='index', columns=['iqr_outliers', 'z_outliers'])


def plot_missingness(
    df: pd.DataFrame,
    figsize: Tuple[int, int] = (12, 6),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Bar chart of the percentage of missing values for columns that have any.

    Args:
        df: DataFrame to inspect
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    table = missingness_table(df)
    table = table[table['missing'] > 0]

    fig, ax = plt.subplots(figsize=figsize)
    if table.empty:
        ax.text(0.5, 0.5, 'No missing values', ha='center', va='center', fontsize=14)
        ax.set_axis_off()
    else:
        ax.bar(table.index, table['percent'], color='steelblue', alpha=0.8)
        ax.set_ylabel('Missing (%)')
        ax.set_xlabel('Column')
        ax.tick_params(axis='x', rotation=60)

    ax.set_title('Missing Values by Column', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Missingness plot saved to {save_path}")

    return fig


def plot_correlation_matrix(
    df: pd.DataFrame,
    method: str = 'pearson',
    figsize: Tuple[int, int] = (16, 14),
    save_path: Optional[str] = None
) -> Tuple[plt.Figure, pd.DataFrame]:
    """
    Create a correlation heatmap for all numerical columns.

    Correlations use pairwise-complete observations.

    Args:
        df: DataFrame with numerical data
        method: Correlation method ('pearson', 'spearman', 'kendall')
        figsize: Figure size (width, height)
        save_path: Path to save the figure (optional)

    Returns:
        Tuple of (Figure, correlation matrix DataFrame)
    """
    corr_matrix = df.select_dtypes(include=[np.number]).corr(method=method)

    fig, ax = plt.subplots(figsize=figsize)

    mask = np.triu(np.ones_like(corr_matrix, dtype=bool), k=1)
    sns.heatmap(
        corr_matrix,
        mask=mask,
        annot=False,
        cmap='RdYlBu_r',
        center=0,
        square=True,
        linewidths=0.5,
        cbar_kws={"shrink": 0.8, "label": "Correlation"},
        ax=ax,
        vmin=-1,
        vmax=1
    )

    ax.set_title(f'Correlation Matrix ({method.capitalize()})',
                 fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Correlation matrix saved to {save_path}")

    return fig, corr_matrix


def plot_distributions(
    df: pd.DataFrame,
    n_plot_cols: int = 4,
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Create distribution plots (histogram + KDE) for all numeric columns.

    Args:
        df: DataFrame with numerical data
        n_plot_cols: Subplots per row
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    columns = df.select_dtypes(include=[np.number]).columns.tolist()
    n_rows = max(1, -(-len(columns) // n_plot_cols))

    fig, axes = plt.subplots(n_rows, n_plot_cols, figsize=(4 * n_plot_cols, 3 * n_rows))
    axes = np.atleast_1d(axes).flatten()

    for idx, col in enumerate(columns):
        ax = axes[idx]
        values = df[col].dropna()

        sns.histplot(values, kde=True, ax=ax, bins=40, alpha=0.7)
        ax.axvline(values.mean(), color='red', linestyle='--', linewidth=1)
        ax.axvline(values.median(), color='green', linestyle='--', linewidth=1)

        title = col
        if len(values) >= 8 and values.std() > 0:
            _, p_value = stats.normaltest(values)
            title = f'{col} (p={p_value:.3f})'
        ax.set_title(title, fontsize=9, fontweight='bold')
        ax.set_xlabel('')

    for idx in range(len(columns), len(axes)):
        axes[idx].set_visible(False)

    plt.suptitle('Distribution Analysis', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Distribution plots saved to {save_path}")

    return fig


def plot_box_plots(
    df: pd.DataFrame,
    figsize: Tuple[int, int] = (16, 6),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Create box plots for outlier detection.

    Args:
        df: DataFrame with numerical data
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    numeric = df.select_dtypes(include=[np.number])
    span = (numeric.max() - numeric.min()).replace(0, 1)
    df_normalized = (numeric - numeric.min()) / span

    fig, ax = plt.subplots(figsize=figsize)
    df_normalized.boxplot(ax=ax, grid=True, rot=75)
    ax.set_title('Box Plots (Normalized) - Outlier Detection', fontsize=14, fontweight='bold')
    ax.set_ylabel('Normalized Value (0-1)')
    ax.set_xlabel('Columns')

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Box plots saved to {save_path}")

    return fig


def generate_eda_report(
    df: pd.DataFrame,
    target: str = "PH",
    output_dir: str = "reports/figures/",
    show_plots: bool = False
) -> Dict[str, Any]:
    """
    Generate a complete EDA report with all visualizations.

    Args:
        df: DataFrame to analyze
        target: Target column, used for the correlation ranking
        output_dir: Directory to save figures
        show_plots: Whether to display plots interactively

    Returns:
        Dictionary containing EDA results and file paths
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    report = {
        "data_shape": df.shape,
        "columns": list(df.columns),
        "figures": [],
        "missingness": None,
        "near_zero_variance": [],
        "outliers": None,
        "correlation_matrix": None,
        "target_correlations": {}
    }

    logger.info("=" * 60)
    logger.info("STARTING EXPLORATORY DATA ANALYSIS")
    logger.info("=" * 60)

    logger.info("Computing missingness...")
    missing = missingness_table(df)
    report["missingness"] = missing.to_dict(orient='index')
    plot_missingness(df, save_path=str(output_dir / "01_missingness.png"))
    report["figures"].append("01_missingness.png")

    logger.info("Checking for near-zero variance...")
    report["near_zero_variance"] = near_zero_variance_columns(df)
    if report["near_zero_variance"]:
        logger.info(f"Near-zero variance columns: {report['near_zero_variance']}")

    logger.info("Computing correlation matrix...")
    _, corr_matrix = plot_correlation_matrix(
        df,
        save_path=str(output_dir / "02_correlation_matrix.png")
    )
    report["figures"].append("02_correlation_matrix.png")
    report["correlation_matrix"] = corr_matrix.to_dict()
    if target in corr_matrix.columns:
        report["target_correlations"] = (
            corr_matrix[target].drop(target).dropna()
            .sort_values(key=np.abs, ascending=False).to_dict()
        )

    logger.info("Plotting distributions...")
    plot_distributions(df, save_path=str(output_dir / "03_distributions.png"))
    report["figures"].append("03_distributions.png")

    logger.info("Creating box plots for outlier detection...")
    report["outliers"] = outlier_counts(df).to_dict(orient='index')
    plot_box_plots(df, save_path=str(output_dir / "04_box_plots.png"))
    report["figures"].append("04_box_plots.png")

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    logger.info("=" * 60)
    logger.info("EDA COMPLETE - All figures saved to: %s", output_dir)
    logger.info("=" * 60)

    return report


def print_correlation_insights(corr_matrix: pd.DataFrame, threshold: float = 0.7) -> None:
    """
    Print pairs of strongly correlated predictors.

    Args:
        corr_matrix: Correlation matrix DataFrame
        threshold: Correlation threshold for "strong" correlation
    """
    print("\n" + "=" * 50)
    print("CORRELATION INSIGHTS")
    print("=" * 50)

    strong_corr = []
    for i in range(len(corr_matrix.columns)):
        for j in range(i + 1, len(corr_matrix.columns)):
            corr_val = corr_matrix.iloc[i, j]
            if abs(corr_val) >= threshold:
                strong_corr.append({
                    "col1": corr_matrix.columns[i],
                    "col2": corr_matrix.columns[j],
                    "correlation": corr_val
                })

    if strong_corr:
        print(f"\nStrong correlations (|r| >= {threshold}):")
        for item in sorted(strong_corr, key=lambda x: abs(x["correlation"]), reverse=True):
            direction = "positive" if item["correlation"] > 0 else "negative"
            print(f"  • {item['col1']} ↔ {item['col2']}: {item['correlation']:.3f} ({direction})")
        print("\nCollinear predictors inflate linear-model coefficient variance;")
        print("tree ensembles are largely unaffected.")
    else:
        print(f"\nNo strong correlations found (|r| >= {threshold})")

    print("=" * 50 + "\n")


def print_eda_summary(report: Dict[str, Any], top_n: int = 10) -> None:
    """
    Print missingness, near-zero variance and target correlations.

    Args:
        report: Dictionary from generate_eda_report
        top_n: Number of rows shown per section
    """
    print("\n" + "=" * 50)
    print("EDA SUMMARY")
    print("=" * 50)

    print("\nMost missing columns:")
    missing = [(col, v) for col, v in report["missingness"].items() if v['missing'] > 0]
    for col, values in missing[:top_n]:
        print(f"  {col:<20} {values['missing']:>5} ({values['percent']:.2f}%)")

    print(f"\nNear-zero variance: {report['near_zero_variance'] or 'none'}")

    if report["target_correlations"]:
        print("\nStrongest correlations with target:")
        for col, r in list(report["target_correlations"].items())[:top_n]:
            print(f"  {col:<20} {r:+.3f}")

    print("=" * 50 + "\n")
