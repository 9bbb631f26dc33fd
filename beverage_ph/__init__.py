"""
Beverage pH Prediction
======================

A machine learning pipeline predicting pH from beverage manufacturing
process measurements.

Modules:
    - data_loader: Workbook download, ingestion and validation
    - eda: Exploratory Data Analysis
    - preprocessing: Column cleanup, brand encoding and train/test splitting
    - imputation: Multiple imputation by predictive mean matching
    - model: Linear, decision tree and gradient boosting regressors
    - evaluation: Model evaluation and metrics
    - prediction: Scoring the evaluation workbook and Excel export
"""

__version__ = "1.0.0"
__author__ = "Predictive Analytics Team"
