"""Reader for ``key = value`` style config.txt files."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, Iterable

from .logging_utils import get_module_logger

logger = get_module_logger("ConfigLoader")


class ConfigLoader:
    """Load flat ``key = value`` config files into a dict of raw strings.

    Blank lines and lines starting with ``#`` are skipped, trailing
    ``# comments`` are stripped and surrounding quotes are removed. Values
    are left untyped; typing and validation belong to the caller.
    """

    @staticmethod
    async def load_async(config_path: Path) -> Dict[str, str]:
        return await asyncio.to_thread(ConfigLoader.load, config_path)

    @staticmethod
    def load(config_path: Path) -> Dict[str, str]:
        if not config_path.exists():
            logger.warning("Config file not found at %s", config_path)
            return {}

        logger.debug("Loading config from: %s", config_path)
        with open(config_path, "r", encoding="utf-8") as fh:
            config = ConfigLoader.parse_lines(fh)

        logger.info("Loaded config from %s (%d values)", config_path, len(config))
        return config

    @staticmethod
    def parse_lines(lines: Iterable[str]) -> Dict[str, str]:
        config: Dict[str, str] = {}

        for line_num, raw_line in enumerate(lines, 1):
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                logger.warning("Invalid config line %d (missing '='): %s", line_num, line)
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip()

            if "#" in value:
                value = value.split("#", 1)[0].strip()

            if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
                value = value[1:-1]

            config[key] = value

        return config


__all__ = ["ConfigLoader"]
