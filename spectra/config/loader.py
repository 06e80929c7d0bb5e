"""
Configuration loading.

The config file is JSON:

    {
      "seed": {
        "max_depth": 4, "min_folders": 1, "max_folders": 3,
        "min_files": 2, "max_files": 5, "seed": 42,
        "db_path": "./spectra.db", "file_binary_seed": 0
      },
      "api": {"host": "localhost", "port": 8086},
      "secondary_tables": {"s1": 0.7, "s2": 0.3}
    }
"""

import logging
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from spectra.errors import InvalidConfigError
from spectra.models.config import SpectraConfig

log = logging.getLogger(__name__)


def parse_config(source: Union[str, bytes, dict]) -> SpectraConfig:
    """Validate a config given as JSON text or an already-decoded dict."""
    try:
        if isinstance(source, dict):
            return SpectraConfig.model_validate(source)
        return SpectraConfig.model_validate_json(source)
    except ValidationError as e:
        raise InvalidConfigError(f"invalid spectra config: {e}") from e


def load_config(config_path: Union[str, Path]) -> SpectraConfig:
    """Read and validate the JSON config file at config_path."""
    path = Path(config_path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise InvalidConfigError(f"cannot read config file {path}: {e}") from e

    config = parse_config(text)
    log.info(
        "loaded config %s: seed=%d max_depth=%d worlds=%s",
        path, config.seed.seed, config.seed.max_depth,
        ["primary"] + config.world_names(),
    )
    return config
