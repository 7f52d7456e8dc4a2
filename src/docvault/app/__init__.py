from .core.env import Env, get_env, pick
from .core.logging import setup_logging

__all__ = [
    "Env",
    "get_env",
    "pick",
    "setup_logging",
]
