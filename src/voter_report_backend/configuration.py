from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

load_dotenv()

_HERE = Path(__file__).resolve()
_CANDIDATE_CONFIG_PATHS = [parent / "config/config.yaml" for parent in _HERE.parents[:3]]

_ENV_CONFIG = os.environ.get("REPORT_SERVER_CONFIG")
if _ENV_CONFIG:
    _CANDIDATE_CONFIG_PATHS.insert(0, Path(_ENV_CONFIG))

CONFIG_PATH = next((path for path in _CANDIDATE_CONFIG_PATHS if path.exists()), None)
if CONFIG_PATH is None:  # pragma: no cover - fail fast in misconfigured environments
    raise FileNotFoundError("Default config.yaml could not be located; set REPORT_SERVER_CONFIG or reinstall the package.")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

Overrides = Union[Mapping[str, Any], Iterable[str], None]


@lru_cache(maxsize=1)
def _load_default_config() -> DictConfig:
    if not CONFIG_PATH.exists():
        raise FileNotFoundError(f"Default config not found at {CONFIG_PATH}")
    return OmegaConf.load(CONFIG_PATH)


def get_default_config_container(resolve: bool = False) -> Dict[str, Any]:
    config = _load_default_config()
    return OmegaConf.to_container(config, resolve=resolve)  # type: ignore[return-value]


def load_server_config(overrides: Overrides = None) -> DictConfig:
    """
    Build the runtime configuration.

    Environment variables are read at call time through the ``oc.env``
    interpolations in ``config.yaml``; overrides win over both.

    Args:
        overrides: Nested mapping (``{"queue": {"max_workers": 4}}``) or a
            dotlist (``["queue.max_workers=4"]``). Unknown keys are rejected.

    Returns:
        A fully resolved, read-only configuration
    """
    base_container = OmegaConf.to_container(_load_default_config(), resolve=False)
    base = OmegaConf.create(base_container)
    OmegaConf.set_struct(base, True)

    if overrides is None:
        cli_config = OmegaConf.create({})
    elif isinstance(overrides, Mapping):
        cli_config = OmegaConf.create(dict(overrides))
    else:
        cli_config = OmegaConf.from_dotlist(list(overrides))

    merged = DictConfig(OmegaConf.merge(base, cli_config))
    resolved = OmegaConf.create(OmegaConf.to_container(merged, resolve=True))
    OmegaConf.set_readonly(resolved, True)
    return resolved  # type: ignore[return-value]


def configure_logging(level: Optional[str] = None) -> None:
    """Install a single stream handler on the root logger."""
    logging.basicConfig(level=(level or "INFO").upper(), format=LOG_FORMAT, force=True)
