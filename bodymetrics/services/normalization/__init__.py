"""Metric name normalization against the catalog."""

from bodymetrics.services.normalization.metric_normalizer import MetricNormalizer, normalize

__all__ = ["MetricNormalizer", "normalize"]
