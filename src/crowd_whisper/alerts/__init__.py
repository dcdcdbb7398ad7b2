"""
Alerts Module
=============

Threshold-based density alerts.
"""

from crowd_whisper.alerts.evaluator import (
    AlertEvaluator,
    AlertThresholds,
    evaluate_density,
)

__all__ = [
    "AlertEvaluator",
    "AlertThresholds",
    "evaluate_density",
]
