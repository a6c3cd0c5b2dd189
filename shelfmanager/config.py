"""Runtime configuration for a :class:`~shelfmanager.manager.Manager`."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

__all__ = ['ManagerConfig', 'DEFAULT_DATABASE_URL']

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

_TRUE = {'1', 'true', 't', 'yes', 'y', 'on'}
_FALSE = {'0', 'false', 'f', 'no', 'n', 'off'}


def _as_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None or raw.strip() == '':
        return default
    val = raw.strip().lower()
    if val in _TRUE:
        return True
    if val in _FALSE:
        return False
    raise ValueError(f"Expected a boolean value, got {raw!r}")


@dataclass
class ManagerConfig:
    """Settings for engine creation and unit-of-work behaviour.

    Attributes:
        database_url: SQLAlchemy async URL.
        echo: Log every SQL statement through SQLAlchemy's engine logger.
        atomic: Run each top-level create as one unit of work: commit on success,
            roll back everything on failure. When False every write is committed
            immediately, so rows written before a failing node are kept.
    """

    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    atomic: bool = True

    @classmethod
    def from_env(cls, prefix: str = "SHELFMANAGER_", environ: Optional[Mapping[str, str]] = None,
                 dotenv: bool = True) -> "ManagerConfig":
        """Build a config from ``<prefix>DATABASE_URL``, ``<prefix>ECHO`` and ``<prefix>ATOMIC``.

        A ``.env`` file is loaded first (without overriding real environment variables)
        unless ``dotenv`` is False or an explicit ``environ`` mapping is given.
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ
        return cls(
            database_url=environ.get(f"{prefix}DATABASE_URL") or DEFAULT_DATABASE_URL,
            echo=_as_bool(environ.get(f"{prefix}ECHO"), False),
            atomic=_as_bool(environ.get(f"{prefix}ATOMIC"), True),
        )
