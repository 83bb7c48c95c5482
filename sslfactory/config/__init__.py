"""Configuration helpers for sslfactory."""

from . import logging, settings  # noqa: F401  # pyright: ignore[reportUnusedImport]
from .settings import FactoryConfig, config_from_mapping, load_factory_config

__all__ = ["FactoryConfig", "config_from_mapping", "load_factory_config"]
