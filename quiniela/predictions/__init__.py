"""Prediction submission."""

from quiniela.predictions.service import upsert_prediction

__all__ = ["upsert_prediction"]
