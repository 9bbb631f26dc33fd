"""
Test Suite for Data Loader Module
=================================

Tests for configuration loading, download and workbook ingestion.
"""

import pytest
import numpy as np
import pandas as pd
import requests

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from beverage_ph import data_loader
from beverage_ph.data_loader import (
    download_file,
    fetch_dataset,
    get_data_summary,
    load_config,
    load_data,
    print_data_summary,
    validate_data,
)


class FakeResponse:
    def __init__(self, content: bytes, status_code: int = 200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class TestLoadConfig:
    """Tests for load_config."""

    def test_load_config(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("random_state: 500\nimputation:\n  n_imputations: 5\n")

        config = load_config(str(path))

        assert config['random_state'] == 500
        assert config['imputation']['n_imputations'] == 5

    def test_missing_config(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / 'nope.yaml'))

    def test_project_config_is_valid(self):
        config = load_config(str(Path(__file__).parent.parent / 'config' / 'config.yaml'))

        assert config['preprocessing']['target'] == 'PH'
        assert config['imputation']['max_iter'] == 50
        assert set(config['models']) == {'linear', 'tree', 'boosted'}


class TestDownload:
    """Tests for download_file and fetch_dataset."""

    def test_download_writes_body(self, tmp_path, monkeypatch):
        calls = []

        def fake_get(url, timeout):
            calls.append(url)
            return FakeResponse(b'a,b\n1,2\n')

        monkeypatch.setattr(data_loader.requests, 'get', fake_get)
        path = download_file('https://example.com/data.csv', str(tmp_path / 'raw' / 'data.csv'))

        assert path.read_bytes() == b'a,b\n1,2\n'
        assert calls == ['https://example.com/data.csv']

    def test_download_failure_is_fatal(self, tmp_path, monkeypatch):
        monkeypatch.setattr(data_loader.requests, 'get',
                            lambda url, timeout: FakeResponse(b'', status_code=404))

        with pytest.raises(requests.HTTPError):
            download_file('https://example.com/missing.xls', str(tmp_path / 'x.xls'))
        assert not (tmp_path / 'x.xls').exists()

    def test_fetch_skips_existing_file(self, tmp_path, monkeypatch):
        path = tmp_path / 'data.csv'
        path.write_text('a,b\n1,2\n')

        def fail_get(url, timeout):
            raise AssertionError("should not download")

        monkeypatch.setattr(data_loader.requests, 'get', fail_get)
        df = fetch_dataset(str(path), url='https://example.com/data.csv')

        assert df.shape == (1, 2)

    def test_fetch_downloads_missing_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(data_loader.requests, 'get',
                            lambda url, timeout: FakeResponse(b'a,b\n3,4\n'))

        df = fetch_dataset(str(tmp_path / 'data.csv'), url='https://example.com/data.csv')

        assert df.loc[0, 'b'] == 4

    def test_fetch_without_url_names_the_setting(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="download URL"):
            fetch_dataset(str(tmp_path / 'StudentData.xls'))


class TestLoadData:
    """Tests for load_data and validation."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_data(str(tmp_path / 'missing.xls'))

    def test_load_workbook(self, raw_data, tmp_path):
        path = tmp_path / 'data.xlsx'
        raw_data.to_excel(path, index=False)

        df = load_data(str(path), expected_columns=raw_data.shape[1])

        assert list(df.columns) == list(raw_data.columns)
        assert df['PH'].isnull().sum() == 4

    def test_expected_columns(self, raw_data, tmp_path):
        path = tmp_path / 'data.csv'
        raw_data.to_csv(path, index=False)

        with pytest.raises(ValueError, match="Expected 3 columns"):
            load_data(str(path), expected_columns=3)

    def test_validate_reports_missing(self, raw_data):
        is_valid, report = validate_data(raw_data, categorical_columns=['Brand Code'], strict=False)

        assert not is_valid
        assert 'PH' in report['missing_by_column']
        assert not any('Non-numeric' in issue for issue in report['issues'])

    def test_validate_strict_raises(self, raw_data):
        with pytest.raises(ValueError, match="validation failed"):
            validate_data(raw_data, strict=True)

    def test_summary(self, raw_data):
        summary = get_data_summary(raw_data)

        assert summary['shape'] == raw_data.shape
        assert summary['statistics']['PH']['missing'] == 4
        assert 'Brand Code' not in summary['statistics']

    def test_print_summary_uses_statistics(self, raw_data, capsys):
        print_data_summary(raw_data)
        out = capsys.readouterr().out

        assert f"Shape: {len(raw_data)} rows" in out
        assert "skew" in out
        assert "Brand Code: object" in out


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
