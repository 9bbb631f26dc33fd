"""
Data Preprocessing Module
=========================

Handles column cleanup, categorical encoding, imputation and train/test splitting.

Functions:
    - clean_column_names: Remove whitespace from column names
    - drop_missing_target: Remove rows without a target value
    - encode_brand_code: One-hot encode the brand code into indicator columns
    - transform_dataset: Apply all of the above to a raw table
    - split_train_test: Random train/test partition
    - align_features: Select the training feature set, in training order
    - preprocess_pipeline: Transform, impute and split the training data
"""

import logging
import re
from typing import Dict, Any, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

from .exceptions import SchemaError
from .imputation import MultipleImputer

logger = logging.getLogger(__name__)

DEFAULT_TARGET = "PH"
DEFAULT_BRAND_COLUMN = "BrandCode"
DEFAULT_BRAND_LEVELS = ("A", "B", "C", "D")
DEFAULT_BRAND_PREFIX = "Brand"

_WHITESPACE = re.compile(r"\s+")


def clean_column_names(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of `df` whose column names contain no whitespace."""
    renamed = {col: _WHITESPACE.sub("", str(col)) for col in df.columns}
    cleaned = df.rename(columns=renamed)

    if cleaned.columns.duplicated().any():
        dupes = cleaned.columns[cleaned.columns.duplicated()].tolist()
        raise SchemaError(f"Column names collide after removing whitespace: {dupes}")

    return cleaned


def drop_missing_target(df: pd.DataFrame, target: str = DEFAULT_TARGET) -> pd.DataFrame:
    """
    Remove rows whose target value is missing.

    Args:
        df: Table with a target column
        target: Name of the target column

    Returns:
        New DataFrame with a fresh RangeIndex

    Raises:
        SchemaError: If the target column is absent
    """
    if target not in df.columns:
        raise SchemaError(f"Target column '{target}' not found. Columns: {list(df.columns)}")

    kept = df.loc[df[target].notna()].reset_index(drop=True)
    logger.info(f"Dropped {len(df) - len(kept)} rows with missing '{target}'")
    return kept


def brand_indicator_columns(
    levels: Sequence[str] = DEFAULT_BRAND_LEVELS,
    prefix: str = DEFAULT_BRAND_PREFIX
) -> List[str]:
    """Names of the indicator columns, one per level plus the missing level."""
    return [f"{prefix}{level}" for level in levels] + [f"{prefix}NA"]


def encode_brand_code(
    df: pd.DataFrame,
    column: str = DEFAULT_BRAND_COLUMN,
    levels: Sequence[str] = DEFAULT_BRAND_LEVELS,
    prefix: str = DEFAULT_BRAND_PREFIX
) -> pd.DataFrame:
    """
    Replace the categorical brand code with 0/1 indicator columns.

    Every known level gets its own column and missing codes go to
    `<prefix>NA`. Codes outside `levels` leave every indicator at 0.
    The input frame is not modified.

    Args:
        df: Table holding the brand code column
        column: Name of the categorical column
        levels: Known category levels
        prefix: Prefix for the indicator column names

    Returns:
        New DataFrame with indicators in place of `column`

    Raises:
        SchemaError: If `column` is absent
    """
    if column not in df.columns:
        raise SchemaError(f"Categorical column '{column}' not found. Columns: {list(df.columns)}")

    codes = df[column]
    indicators = {
        f"{prefix}{level}": (codes == level).astype(int) for level in levels
    }
    indicators[f"{prefix}NA"] = codes.isna().astype(int)

    unexpected = codes.dropna()[~codes.dropna().isin(levels)]
    if len(unexpected) > 0:
        logger.warning(
            f"{len(unexpected)} rows have unexpected '{column}' values "
            f"{sorted(unexpected.astype(str).unique())}; their indicators are all zero"
        )

    position = df.columns.get_loc(column)
    encoded = df.drop(columns=[column])
    for offset, (name, values) in enumerate(indicators.items()):
        encoded.insert(position + offset, name, values.to_numpy())

    return encoded


def transform_dataset(
    df: pd.DataFrame,
    target: str = DEFAULT_TARGET,
    brand_column: str = DEFAULT_BRAND_COLUMN,
    brand_levels: Sequence[str] = DEFAULT_BRAND_LEVELS,
    brand_prefix: str = DEFAULT_BRAND_PREFIX,
    require_target: bool = True
) -> pd.DataFrame:
    """
    Apply the full column transform to a raw table.

    With `require_target` the rows missing the target are dropped. Without it
    (the prediction workbook, whose target column is empty) the target column
    is removed if present.
    """
    cleaned = clean_column_names(df)

    if require_target:
        cleaned = drop_missing_target(cleaned, target)
    else:
        cleaned = cleaned.drop(columns=[target], errors="ignore").reset_index(drop=True)

    transformed = encode_brand_code(cleaned, brand_column, brand_levels, brand_prefix)
    logger.info(f"Transformed table: {transformed.shape[0]} rows × {transformed.shape[1]} columns")
    return transformed


def split_features_target(
    df: pd.DataFrame,
    target: str = DEFAULT_TARGET
) -> Tuple[pd.DataFrame, pd.Series]:
    """Split a transformed table into its feature frame and target series."""
    if target not in df.columns:
        raise SchemaError(f"Target column '{target}' not found.")
    return df.drop(columns=[target]), df[target]


def train_size_for(n_rows: int, train_fraction: float) -> int:
    """Number of training rows: `n_rows * train_fraction`, rounded half up."""
    if not 0 < train_fraction < 1:
        raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")
    return int(np.floor(n_rows * train_fraction + 0.5))


def split_train_test(
    df: pd.DataFrame,
    train_fraction: float = 0.7,
    random_state: Optional[int] = None
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Randomly split rows into train and test sets.

    Rows are independent observations so the split is shuffled.

    Args:
        df: Table to split
        train_fraction: Fraction of rows for training
        random_state: Seed for the shuffle

    Returns:
        Tuple of (train, test)
    """
    n_train = train_size_for(len(df), train_fraction)
    train, test = train_test_split(df, train_size=n_train, random_state=random_state)

    logger.info(f"Train/Test split: {len(train)} train rows, {len(test)} test rows")
    return train, test


def align_features(df: pd.DataFrame, feature_columns: Sequence[str]) -> pd.DataFrame:
    """
    Select exactly `feature_columns`, in that order.

    Raises:
        SchemaError: If any training feature is missing from `df`
    """
    missing = [col for col in feature_columns if col not in df.columns]
    if missing:
        raise SchemaError(f"Columns required by the model are missing: {missing}")

    extra = [col for col in df.columns if col not in feature_columns]
    if extra:
        logger.info(f"Ignoring columns not used in training: {extra}")

    return df.loc[:, list(feature_columns)]


def preprocess_pipeline(
    df: pd.DataFrame,
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Transform, impute and split the training table.

    The target is held out of imputation so it never acts as a predictor.

    Args:
        df: Raw training DataFrame
        config: Configuration dictionary

    Returns:
        Dictionary containing:
            - transformed: Table after column transforms (with missing values)
            - imputed: Completed table (features + target)
            - train, test: Split of the completed table
            - feature_columns: Ordered feature names
            - imputer: Fitted MultipleImputer
    """
    prep_config = config.get('preprocessing', {})
    target = prep_config.get('target', DEFAULT_TARGET)
    random_state = config.get('random_state', 42)

    logger.info("=" * 60)
    logger.info("STARTING DATA PREPROCESSING")
    logger.info("=" * 60)

    transformed = transform_dataset(
        df,
        target=target,
        brand_column=prep_config.get('brand_column', DEFAULT_BRAND_COLUMN),
        brand_levels=prep_config.get('brand_levels', DEFAULT_BRAND_LEVELS),
        brand_prefix=prep_config.get('brand_prefix', DEFAULT_BRAND_PREFIX),
        require_target=True
    )

    features, y = split_features_target(transformed, target)

    imputer = MultipleImputer.from_config(config.get('imputation', {}), random_state=random_state)
    features_imputed = imputer.fit_transform(features)

    imputed = features_imputed.copy()
    imputed[target] = y.to_numpy()

    train, test = split_train_test(
        imputed,
        train_fraction=prep_config.get('train_fraction', 0.7),
        random_state=random_state
    )

    result = {
        'transformed': transformed,
        'imputed': imputed,
        'train': train,
        'test': test,
        'feature_columns': features.columns.tolist(),
        'target': target,
        'imputer': imputer
    }

    logger.info("=" * 60)
    logger.info("PREPROCESSING COMPLETE")
    logger.info(f"  Training rows: {len(train)}")
    logger.info(f"  Test rows: {len(test)}")
    logger.info(f"  Features: {len(result['feature_columns'])}")
    logger.info("=" * 60)

    return result


def print_preprocessing_summary(result: Dict[str, Any]) -> None:
    """
    Print a summary of the preprocessing results.

    Args:
        result: Dictionary from preprocess_pipeline
    """
    transformed = result['transformed']
    print("\n" + "=" * 50)
    print("PREPROCESSING SUMMARY")
    print("=" * 50)
    print(f"Rows after dropping missing target: {len(transformed)}")
    print(f"Cells imputed: {int(transformed.isnull().sum().sum())}")
    print(f"Training rows: {len(result['train'])}")
    print(f"Test rows: {len(result['test'])}")
    print(f"Features: {len(result['feature_columns'])}")
    print(f"Imputation rounds: {result['imputer'].n_imputations}")
    print("=" * 50 + "\n")
