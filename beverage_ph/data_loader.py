"""
Data Loader Module
==================

Handles workbook download, ingestion, validation, and basic data quality checks.

Functions:
    - load_config: Load YAML configuration file
    - download_file: Fetch a remote file over HTTP and persist it locally
    - load_data: Load a spreadsheet into a DataFrame
    - fetch_dataset: Download (if needed) and load a dataset
    - validate_data: Check data quality constraints
    - get_data_summary: Generate basic statistics
"""

import logging
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

import pandas as pd
import numpy as np
import requests
import yaml

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 60


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dictionary containing configuration parameters

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    logger.info(f"Loaded configuration from {config_path}")
    return config or {}


def download_file(url: str, destination: str) -> Path:
    """
    Download a file with a single HTTP GET and write the body to disk.

    There is no retry; any network or HTTP error is raised to the caller.

    Args:
        url: Remote location of the file
        destination: Local path to write

    Returns:
        Path to the written file

    Raises:
        requests.RequestException: If the request fails or returns an error status
    """
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Downloading {url}")
    response = requests.get(url, timeout=DOWNLOAD_TIMEOUT)
    response.raise_for_status()

    with open(destination, 'wb') as f:
        f.write(response.content)

    logger.info(f"Saved {len(response.content)} bytes to {destination}")
    return destination


def load_data(
    file_path: str,
    expected_columns: Optional[int] = None,
    sheet_name: Any = 0
) -> pd.DataFrame:
    """
    Load a spreadsheet (legacy .xls, .xlsx) or CSV file into a DataFrame.

    Args:
        file_path: Path to the data file
        expected_columns: Expected number of columns (optional validation)
        sheet_name: Sheet to read from a workbook

    Returns:
        DataFrame containing the loaded data

    Raises:
        FileNotFoundError: If data file doesn't exist
        ValueError: If data doesn't meet the expected shape
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Data file not found: {file_path}")

    suffix = file_path.suffix.lower()
    if suffix == '.csv':
        df = pd.read_csv(file_path)
    elif suffix == '.xls':
        df = pd.read_excel(file_path, sheet_name=sheet_name, engine='xlrd')
    else:
        df = pd.read_excel(file_path, sheet_name=sheet_name)
    logger.info(f"Loaded data from {file_path}: {df.shape[0]} rows × {df.shape[1]} columns")

    if expected_columns is not None and df.shape[1] != expected_columns:
        raise ValueError(
            f"Expected {expected_columns} columns, but found {df.shape[1]}. "
            f"Columns: {list(df.columns)}"
        )

    return df


def fetch_dataset(
    local_path: str,
    url: Optional[str] = None,
    force_download: bool = False
) -> pd.DataFrame:
    """
    Download a dataset when a URL is configured and load it.

    The download is skipped when the local copy already exists, unless
    `force_download` is set.

    Args:
        local_path: Where the file lives (or will be written)
        url: Remote location of the file (optional)
        force_download: Re-download even if the local file exists

    Returns:
        Loaded DataFrame
    """
    local_path = Path(local_path)

    if not url and not local_path.exists():
        raise FileNotFoundError(
            f"Data file not found: {local_path}. Copy the workbook there or set "
            f"its download URL in the data section of the config"
        )

    if url and (force_download or not local_path.exists()):
        download_file(url, str(local_path))

    return load_data(str(local_path))


def validate_data(
    df: pd.DataFrame,
    categorical_columns: Optional[list] = None,
    strict: bool = True
) -> Tuple[bool, Dict[str, Any]]:
    """
    Validate data quality constraints for the process measurements.

    Checks:
        - All columns other than the declared categorical ones are numerical
        - Missing values
        - Duplicate rows
        - Extreme values (>4 std from the mean)

    Args:
        df: DataFrame to validate
        categorical_columns: Columns allowed to hold non-numeric values
        strict: If True, raise errors on validation failure

    Returns:
        Tuple of (is_valid, validation_report)
    """
    categorical_columns = categorical_columns or []
    report = {
        "total_rows": len(df),
        "total_columns": len(df.columns),
        "column_names": list(df.columns),
        "issues": []
    }

    non_numeric_cols = [
        col for col in df.select_dtypes(exclude=[np.number]).columns
        if col not in categorical_columns
    ]
    if non_numeric_cols:
        issue = f"Non-numeric columns found: {non_numeric_cols}"
        report["issues"].append(issue)
        logger.warning(issue)

    missing_counts = df.isnull().sum()
    total_missing = missing_counts.sum()
    if total_missing > 0:
        missing_pct = (total_missing / (df.shape[0] * df.shape[1])) * 100
        issue = f"Missing values: {total_missing} ({missing_pct:.2f}%)"
        report["issues"].append(issue)
        report["missing_by_column"] = missing_counts[missing_counts > 0].to_dict()
        logger.warning(issue)

    duplicates = df.duplicated().sum()
    if duplicates > 0:
        issue = f"Duplicate rows found: {duplicates}"
        report["issues"].append(issue)
        logger.warning(issue)

    for col in df.select_dtypes(include=[np.number]).columns:
        col_std = df[col].std()
        col_mean = df[col].mean()
        outliers = ((df[col] - col_mean).abs() > 4 * col_std).sum()
        if outliers > 0:
            issue = f"Column '{col}' has {outliers} potential outliers (>4 std)"
            report["issues"].append(issue)
            logger.warning(issue)

    is_valid = len(report["issues"]) == 0
    report["is_valid"] = is_valid

    if strict and not is_valid:
        raise ValueError(f"Data validation failed: {report['issues']}")

    return is_valid, report


def get_data_summary(df: pd.DataFrame) -> Dict[str, Any]:
    """
    Generate summary statistics for the dataset.

    Args:
        df: DataFrame to summarize

    Returns:
        Dictionary containing summary statistics
    """
    summary = {
        "shape": df.shape,
        "columns": list(df.columns),
        "dtypes": df.dtypes.astype(str).to_dict(),
        "memory_usage_mb": df.memory_usage(deep=True).sum() / 1024 / 1024,
        "statistics": {}
    }

    for col in df.select_dtypes(include=[np.number]).columns:
        summary["statistics"][col] = {
            "count": int(df[col].count()),
            "missing": int(df[col].isnull().sum()),
            "mean": float(df[col].mean()),
            "std": float(df[col].std()),
            "min": float(df[col].min()),
            "50%": float(df[col].quantile(0.50)),
            "max": float(df[col].max()),
            "skew": float(df[col].skew())
        }

    return summary


def print_data_summary(df: pd.DataFrame) -> None:
    """
    Print a formatted summary of the dataset to console.

    Args:
        df: DataFrame to summarize
    """
    summary = get_data_summary(df)
    n_rows, n_cols = summary["shape"]

    print("\n" + "=" * 60)
    print("DATASET SUMMARY")
    print("=" * 60)
    print(f"Shape: {n_rows} rows × {n_cols} columns")
    print(f"Memory Usage: {summary['memory_usage_mb'] * 1024:.2f} KB")
    print("\nColumn Information:")
    print("-" * 40)

    for col in summary["columns"]:
        non_null = df[col].count()
        null_pct = (1 - non_null / n_rows) * 100 if n_rows else 0.0
        print(f"  {col}: {summary['dtypes'][col]} | {non_null} non-null ({null_pct:.1f}% missing)")

    print("\nBasic Statistics:")
    print("-" * 40)
    if summary["statistics"]:
        print(pd.DataFrame(summary["statistics"]).T.round(4).to_string())
    print("=" * 60 + "\n")
