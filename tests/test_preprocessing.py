"""
Test Suite for Preprocessing Module
===================================

Tests for column cleanup, brand encoding, splitting and feature alignment.
"""

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from beverage_ph.exceptions import SchemaError
from beverage_ph.preprocessing import (
    align_features,
    brand_indicator_columns,
    clean_column_names,
    drop_missing_target,
    encode_brand_code,
    preprocess_pipeline,
    split_train_test,
    train_size_for,
    transform_dataset,
)

BRAND_COLUMNS = ['BrandA', 'BrandB', 'BrandC', 'BrandD', 'BrandNA']


class TestTransform:
    """Tests for the column transforms."""

    def test_clean_column_names(self, raw_data):
        """No column name contains whitespace after cleaning."""
        cleaned = clean_column_names(raw_data)

        assert not any(any(ch.isspace() for ch in col) for col in cleaned.columns)
        assert 'BrandCode' in cleaned.columns
        assert 'CarbVolume' in cleaned.columns

    def test_clean_column_names_collision(self):
        """Names that collide after whitespace removal are a schema error."""
        df = pd.DataFrame({'Carb Volume': [1.0], 'CarbVolume': [2.0]})

        with pytest.raises(SchemaError, match="collide"):
            clean_column_names(df)

    def test_drop_missing_target(self, raw_data):
        """Rows without pH are removed and the index is reset."""
        cleaned = drop_missing_target(clean_column_names(raw_data), 'PH')

        assert len(cleaned) == len(raw_data) - 4
        assert cleaned['PH'].isnull().sum() == 0
        assert list(cleaned.index) == list(range(len(cleaned)))

    def test_drop_missing_target_requires_column(self, raw_data):
        with pytest.raises(SchemaError, match="Target column"):
            drop_missing_target(raw_data.drop(columns=['PH']), 'PH')

    def test_brand_indicators_exclusive_and_exhaustive(self, raw_data):
        """Exactly one brand indicator is set on every row."""
        encoded = encode_brand_code(clean_column_names(raw_data))

        assert 'BrandCode' not in encoded.columns
        assert (encoded[BRAND_COLUMNS].sum(axis=1) == 1).all()
        assert set(np.unique(encoded[BRAND_COLUMNS].values)) <= {0, 1}

    def test_brand_b_row(self):
        """A brand B row gets BrandB=1 and every other indicator 0."""
        df = pd.DataFrame({'BrandCode': ['B'], 'CarbVolume': [5.3], 'PH': [8.5]})
        encoded = encode_brand_code(df)

        row = encoded.iloc[0]
        assert row['BrandB'] == 1
        assert row['BrandA'] == 0
        assert row['BrandC'] == 0
        assert row['BrandD'] == 0
        assert row['BrandNA'] == 0

    def test_missing_brand_goes_to_na_level(self):
        df = pd.DataFrame({'BrandCode': [np.nan, 'A']})
        encoded = encode_brand_code(df)

        assert encoded.loc[0, 'BrandNA'] == 1
        assert encoded.loc[0, ['BrandA', 'BrandB', 'BrandC', 'BrandD']].sum() == 0

    def test_unexpected_brand_is_all_zero(self):
        """Codes outside the known levels leave every indicator at zero."""
        df = pd.DataFrame({'BrandCode': ['Z', 'C']})
        encoded = encode_brand_code(df)

        assert encoded.loc[0, BRAND_COLUMNS].sum() == 0
        assert encoded.loc[1, 'BrandC'] == 1

    def test_encode_does_not_mutate_input(self, raw_data):
        cleaned = clean_column_names(raw_data)
        before = cleaned.copy()

        encode_brand_code(cleaned)

        pd.testing.assert_frame_equal(cleaned, before)

    def test_encode_keeps_column_position(self):
        df = pd.DataFrame({'First': [1.0], 'BrandCode': ['A'], 'Last': [2.0]})
        encoded = encode_brand_code(df)

        assert list(encoded.columns) == ['First'] + BRAND_COLUMNS + ['Last']

    def test_encode_requires_column(self):
        with pytest.raises(SchemaError, match="Categorical column"):
            encode_brand_code(pd.DataFrame({'CarbVolume': [1.0]}))

    def test_brand_indicator_columns(self):
        assert brand_indicator_columns() == BRAND_COLUMNS

    def test_transform_dataset_training(self, raw_data):
        transformed = transform_dataset(raw_data)

        assert transformed['PH'].isnull().sum() == 0
        assert len(transformed) == len(raw_data) - 4
        assert all(col in transformed.columns for col in BRAND_COLUMNS)
        assert not any(' ' in col for col in transformed.columns)

    def test_transform_dataset_prediction(self, raw_data):
        """Without a required target every row is kept and the target is dropped."""
        evaluation = raw_data.assign(PH=np.nan)
        transformed = transform_dataset(evaluation, require_target=False)

        assert len(transformed) == len(raw_data)
        assert 'PH' not in transformed.columns


class TestSplit:
    """Tests for the train/test split."""

    def test_train_size_rounds_half_up(self):
        assert train_size_for(2567, 0.7) == 1797
        assert train_size_for(10, 0.75) == 8

    def test_train_size_rejects_bad_fraction(self):
        with pytest.raises(ValueError):
            train_size_for(100, 1.0)

    def test_full_size_scenario(self):
        """2,571 rows with 4 missing pH -> 2,567 rows -> 1,797 train / 770 test."""
        rng = np.random.default_rng(1)
        n = 2571
        df = pd.DataFrame({
            'Brand Code': rng.choice(['A', 'B', 'C', 'D'], size=n),
            'Carb Volume': rng.normal(5.4, 0.1, n),
            'PH': rng.normal(8.5, 0.17, n),
        })
        df.loc[[3, 100, 1500, 2570], 'PH'] = np.nan

        transformed = transform_dataset(df)
        train, test = split_train_test(transformed, 0.7, random_state=500)

        assert len(transformed) == 2567
        assert len(train) == 1797
        assert len(test) == 770

    def test_split_is_disjoint_and_seeded(self, raw_data):
        transformed = transform_dataset(raw_data)

        train_a, test_a = split_train_test(transformed, 0.7, random_state=7)
        train_b, test_b = split_train_test(transformed, 0.7, random_state=7)

        assert set(train_a.index).isdisjoint(test_a.index)
        assert len(train_a) + len(test_a) == len(transformed)
        assert list(train_a.index) == list(train_b.index)
        assert list(test_a.index) == list(test_b.index)


class TestAlignFeatures:
    """Tests for the feature alignment contract."""

    def test_reorders_and_drops_extra(self):
        df = pd.DataFrame({'b': [1], 'extra': [2], 'a': [3]})
        aligned = align_features(df, ['a', 'b'])

        assert list(aligned.columns) == ['a', 'b']

    def test_missing_feature_raises(self):
        df = pd.DataFrame({'a': [1]})

        with pytest.raises(SchemaError, match="missing"):
            align_features(df, ['a', 'b'])


class TestPreprocessPipeline:
    """Tests for the preprocess_pipeline function."""

    def test_pipeline_outputs(self, raw_data, small_config):
        result = preprocess_pipeline(raw_data, small_config)

        expected_keys = ['transformed', 'imputed', 'train', 'test', 'feature_columns', 'target', 'imputer']
        for key in expected_keys:
            assert key in result, f"Missing key: {key}"

        assert result['imputed'].isnull().sum().sum() == 0
        assert 'PH' not in result['feature_columns']
        assert len(result['train']) == train_size_for(len(raw_data) - 4, 0.7)
        assert len(result['train']) + len(result['test']) == len(raw_data) - 4

    def test_target_is_not_imputed_or_altered(self, raw_data, small_config):
        result = preprocess_pipeline(raw_data, small_config)

        np.testing.assert_array_equal(
            result['imputed']['PH'].to_numpy(),
            result['transformed']['PH'].to_numpy()
        )
        assert 'PH' not in result['imputer'].imputed_columns_


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
