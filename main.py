#!/usr/bin/env python3
"""
Beverage pH Prediction - Main Pipeline
======================================

Orchestrates the pH modelling pipeline for the beverage process data.

Phases:
    1. EDA - Missingness, near-zero variance, correlation and outliers
    2. Preprocessing - Column cleanup, brand encoding, PMM imputation, split
    3. Training - Linear regression, decision tree, gradient boosting
    4. Evaluation - RMSE, MAE, R², SMAPE and exact-match accuracy
    5. Prediction - Score the evaluation workbook and export to Excel

Usage:
    # Run complete pipeline
    python main.py

    # Run specific phase
    python main.py --phase eda

    # Grid-search the gradient boosting hyperparameters
    python main.py --phase tune

    # Run with custom config
    python main.py --config config/custom.yaml
"""

import argparse
import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, Any

import pandas as pd

from beverage_ph.data_loader import load_config, fetch_dataset, validate_data, print_data_summary
from beverage_ph.eda import (
    generate_eda_report,
    near_zero_variance_columns,
    print_correlation_insights,
    print_eda_summary,
)
from beverage_ph.imputation import print_imputation_summary
from beverage_ph.preprocessing import (
    clean_column_names,
    preprocess_pipeline,
    print_preprocessing_summary,
    split_features_target,
)
from beverage_ph.model import train_models, tune_boosted_model, print_model_summary, RegressionModel
from beverage_ph.evaluation import evaluate_model, print_evaluation_report
from beverage_ph.prediction import run_final_prediction, print_prediction_results


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the pipeline."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(f'pipeline_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log')
        ]
    )


def load_training_data(config: Dict[str, Any]) -> pd.DataFrame:
    """Fetch and load the training workbook."""
    data_config = config.get('data', {})
    return fetch_dataset(
        data_config.get('train_path', 'data/raw/StudentData.xls'),
        url=data_config.get('train_url')
    )


def load_prediction_data(config: Dict[str, Any]) -> pd.DataFrame:
    """Fetch and load the evaluation workbook."""
    data_config = config.get('data', {})
    return fetch_dataset(
        data_config.get('predict_path', 'data/raw/StudentEvaluation.xls'),
        url=data_config.get('predict_url')
    )


def run_eda(df: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute Phase 1: Exploratory Data Analysis.

    Args:
        df: Raw data
        config: Configuration dictionary

    Returns:
        EDA report dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 1: EXPLORATORY DATA ANALYSIS")
    print("=" * 70)

    output_dir = config.get('output', {}).get('figures_path', 'reports/figures/')
    target = config.get('preprocessing', {}).get('target', 'PH')

    report = generate_eda_report(
        clean_column_names(df), target=target, output_dir=output_dir, show_plots=False
    )

    print_eda_summary(report)
    print_correlation_insights(pd.DataFrame(report["correlation_matrix"]))

    print(f"\n✓ EDA complete. {len(report['figures'])} figures saved to {output_dir}")

    return report


def run_preprocessing(df: pd.DataFrame, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute Phase 2: Data Preprocessing.

    Args:
        df: Raw data
        config: Configuration dictionary

    Returns:
        Preprocessing result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 2: DATA PREPROCESSING")
    print("=" * 70)

    result = preprocess_pipeline(df, config)

    print_imputation_summary(result['imputer'])
    print_preprocessing_summary(result)

    return result


def run_training(
    prep_result: Dict[str, Any],
    config: Dict[str, Any],
    near_zero_variance: list
) -> Dict[str, RegressionModel]:
    """
    Execute Phase 3: Model Training.

    Args:
        prep_result: Preprocessing result dictionary
        config: Configuration dictionary
        near_zero_variance: Columns flagged during EDA

    Returns:
        Dictionary of trained models
    """
    print("\n" + "=" * 70)
    print("PHASE 3: MODEL TRAINING")
    print("=" * 70)

    model_dir = config.get('output', {}).get('model_path', 'models/')

    models = train_models(
        prep_result['train'],
        config,
        near_zero_variance=near_zero_variance,
        save_dir=model_dir
    )

    print_model_summary(models)

    return models


def run_evaluation(
    models: Dict[str, RegressionModel],
    prep_result: Dict[str, Any],
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Execute Phase 4: Model Evaluation.

    Args:
        models: Trained models
        prep_result: Preprocessing result dictionary
        config: Configuration dictionary

    Returns:
        Evaluation result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 4: MODEL EVALUATION")
    print("=" * 70)

    output_config = config.get('output', {})

    result = evaluate_model(
        models,
        prep_result['test'],
        target=prep_result['target'],
        show_plots=False,
        figures_dir=output_config.get('figures_path', 'reports/figures/'),
        metrics_dir=output_config.get('metrics_path', 'reports/metrics/')
    )

    print_evaluation_report(result['comparison'])

    return result


def run_final_prediction_phase(
    models: Dict[str, RegressionModel],
    eval_result: Dict[str, Any],
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Execute Phase 5: Final Prediction.

    Args:
        models: Trained models
        eval_result: Evaluation result with the best model
        config: Configuration dictionary

    Returns:
        Prediction result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 5: FINAL PREDICTION")
    print("=" * 70)

    choice = config.get('final_model', 'boosted')
    if choice == 'best':
        choice = eval_result['best_model']
    if choice not in models:
        raise ValueError(f"Final model '{choice}' was not trained. Trained: {list(models)}")

    df = load_prediction_data(config)
    result = run_final_prediction(models[choice], df, config)

    print_prediction_results(result)

    return result


def run_tuning(prep_result: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Grid-search gradient boosting hyperparameters on the training split.

    Args:
        prep_result: Preprocessing result dictionary
        config: Configuration dictionary

    Returns:
        Dictionary with best parameters and CV score
    """
    print("\n" + "=" * 70)
    print("HYPERPARAMETER TUNING")
    print("=" * 70)

    tuning_config = config.get('tuning', {})
    X, y = split_features_target(prep_result['train'], prep_result['target'])

    search = tune_boosted_model(
        X, y,
        param_grid=tuning_config.get('param_grid', {}),
        n_splits=tuning_config.get('n_splits', 5),
        n_repeats=tuning_config.get('n_repeats', 3),
        random_state=config.get('random_state', 42)
    )

    print(f"Best parameters: {search.best_params_}")
    print(f"Best CV RMSE: {-search.best_score_:.4f}")
    print("Copy these into models.boosted.params to use them.")

    return {'best_params': search.best_params_, 'best_rmse': -search.best_score_}


def run_full_pipeline(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Execute the complete 5-phase pipeline.

    Args:
        config_path: Path to configuration file

    Returns:
        Dictionary containing all phase results
    """
    config = load_config(config_path)
    setup_logging(config.get('logging', {}).get('level', 'INFO'))

    print("\n" + "=" * 70)
    print("BEVERAGE pH PREDICTION PIPELINE")
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70)

    print("\n📊 Loading data...")
    df = load_training_data(config)
    print_data_summary(df)

    brand_column = config.get('preprocessing', {}).get('brand_column', 'BrandCode')
    is_valid, _ = validate_data(
        clean_column_names(df), categorical_columns=[brand_column], strict=False
    )
    if not is_valid:
        print("⚠️  Data validation warnings detected. Proceeding anyway...")

    results = {'config': config, 'data_shape': df.shape}

    results['eda'] = run_eda(df, config)
    results['preprocessing'] = run_preprocessing(df, config)
    results['models'] = run_training(
        results['preprocessing'], config, results['eda']['near_zero_variance']
    )
    results['evaluation'] = run_evaluation(results['models'], results['preprocessing'], config)
    results['prediction'] = run_final_prediction_phase(
        results['models'], results['evaluation'], config
    )

    best = results['evaluation']['best_model']
    print("\n" + "=" * 70)
    print("PIPELINE COMPLETE")
    print("=" * 70)
    print(f"  • Input data: {df.shape[0]} rows × {df.shape[1]} columns")
    print(f"  • Best model: {best} (RMSE {results['evaluation']['metrics'][best]['rmse']:.4f})")
    print(f"  • Predicted with: {results['prediction']['model_kind']}")
    print(f"  • Output: {results['prediction']['workbook_path']}")
    print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70 + "\n")

    return results


def run_single_phase(phase: str, config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Execute a single phase of the pipeline.

    Args:
        phase: Phase to run ('eda', 'preprocess', 'train', 'evaluate', 'tune', 'predict')
        config_path: Path to configuration file

    Returns:
        Phase result dictionary
    """
    if phase == 'predict':
        return run_full_pipeline(config_path)

    config = load_config(config_path)
    setup_logging(config.get('logging', {}).get('level', 'INFO'))

    df = load_training_data(config)

    if phase == 'eda':
        return run_eda(df, config)

    prep_result = run_preprocessing(df, config)

    if phase == 'preprocess':
        return prep_result

    elif phase == 'tune':
        return run_tuning(prep_result, config)

    elif phase in ('train', 'evaluate'):
        nzv = near_zero_variance_columns(clean_column_names(df))
        models = run_training(prep_result, config, nzv)
        if phase == 'train':
            return {'models': models, 'preprocessing': prep_result}
        return run_evaluation(models, prep_result, config)

    else:
        raise ValueError(
            f"Unknown phase: {phase}. Choose from: eda, preprocess, train, evaluate, tune, predict"
        )


def main():
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Beverage pH prediction pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py
  python main.py --phase eda
  python main.py --config config/custom.yaml
        """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--phase', '-p',
        type=str,
        choices=['eda', 'preprocess', 'train', 'evaluate', 'tune', 'predict', 'all'],
        default='all',
        help='Phase to run (default: all)'
    )

    args = parser.parse_args()

    if not Path(args.config).exists():
        print(f"Error: Config file not found: {args.config}")
        sys.exit(1)

    try:
        if args.phase == 'all':
            run_full_pipeline(args.config)
        else:
            run_single_phase(args.phase, args.config)

        return 0

    except Exception as e:
        logging.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"\n❌ Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
