"""Which deployment we run in, and per-deployment defaults."""

from __future__ import annotations

import os
import warnings
from enum import StrEnum
from functools import cache


class Env(StrEnum):
    LOCAL = "local"
    DEV = "dev"
    TEST = "test"
    PROD = "prod"


ALIASES: dict[str, Env] = {
    "development": Env.DEV,
    "develop": Env.DEV,
    "testing": Env.TEST,
    "ci": Env.TEST,
    "production": Env.PROD,
    "live": Env.PROD,
}


def parse_env(raw: str | None) -> Env | None:
    if not raw:
        return None
    val = raw.strip().lower()
    if val in Env._value2member_map_:
        return Env(val)
    return ALIASES.get(val)


@cache
def get_env() -> Env:
    """``DOCVAULT_ENV``, then ``APP_ENV``, else local. Unknown names warn and mean local."""
    raw = os.getenv("DOCVAULT_ENV") or os.getenv("APP_ENV")
    env = parse_env(raw)
    if env is None and raw:
        warnings.warn(f"Unrecognized environment '{raw}', defaulting to 'local'.", RuntimeWarning, stacklevel=2)
    return env or Env.LOCAL


def pick(*, prod, nonprod, dev=None, test=None, local=None):
    """``pick(prod="json", nonprod="plain")``; ``dev``/``test``/``local`` override ``nonprod``."""
    e = get_env()
    if e is Env.PROD:
        return prod
    chosen = {Env.DEV: dev, Env.TEST: test, Env.LOCAL: local}.get(e)
    return nonprod if chosen is None else chosen
