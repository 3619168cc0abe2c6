# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Wellbeing config — defaults, file/env loading, logging setup.
"""

import json
import logging
import os

from pydantic import ValidationError

from core.paths import get_paths
from wellbeing.schemas import WellbeingConfig

logger = logging.getLogger("deite.config")

# Defaults
DEFAULT_CONFIG = WellbeingConfig().model_dump()

# Env overrides (name -> config field)
ENV_OVERRIDES = {
    "DEITE_ANALYSIS_URL": "analysis_url",
    "DEITE_ANALYSIS_MODEL": "analysis_model",
}

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: int = logging.INFO, stderr: bool = True) -> logging.Logger:
    """Configure deite.* logging to file + (optionally) stderr."""
    paths = get_paths()
    paths.logs_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("deite")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # File handler, appends to wellbeing.log
    fh = logging.FileHandler(str(paths.log_file), mode="a")
    fh.setLevel(level)
    fh.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(fh)

    # Stderr handler for the CLI
    if stderr:
        sh = logging.StreamHandler()
        sh.setLevel(level)
        sh.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        logger.addHandler(sh)

    return logger


def load_config() -> WellbeingConfig:
    """Load wellbeing config, falling back to defaults."""
    config = dict(DEFAULT_CONFIG)
    config_file = get_paths().config_file
    if config_file.exists():
        try:
            user = json.loads(config_file.read_text())
            if isinstance(user, dict):
                config.update(user)
            else:
                logger.warning("Ignoring %s: expected a JSON object", config_file)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable config %s: %s", config_file, e)

    for env_name, field in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            config[field] = value

    try:
        return WellbeingConfig.model_validate(config)
    except ValidationError as e:
        logger.warning("Invalid wellbeing config (%d error(s)), using defaults", e.error_count())
        return WellbeingConfig()
