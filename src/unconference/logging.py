from loguru import logger

from .config import get_settings

_settings = get_settings()

if _settings.log_file:
    logger.add(
        _settings.log_file,
        level=_settings.log_level,
        rotation="10 MB",
        retention="7 days",
        serialize=True,
    )

__all__ = ["logger"]
