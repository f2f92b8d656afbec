"""Runtime for the managed database allowlist operator."""

from .config import OperatorConfig, load_config  # noqa: F401

__all__ = [
    "OperatorConfig",
    "load_config",
]
