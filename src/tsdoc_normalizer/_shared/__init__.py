"""Shared logging and metrics helpers used across ``tsdoc_normalizer``."""
