"""Programmatic entry points for demshape runs."""

from .run import ConfigRunResult, backproject_from_config, ground_range_from_config

__all__ = ["ConfigRunResult", "backproject_from_config", "ground_range_from_config"]
