"""Estimators, models and predictors for Amazon's built-in algorithms."""
