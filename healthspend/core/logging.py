import sys
from loguru import logger
from .config import settings


def setup_logging():
    """Replace loguru's default sink with one honouring LOG_LEVEL / LOG_JSON."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level.upper(),
        serialize=settings.log_json,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level> | {extra}",
    )
    logger.info("Logging configured", app=settings.app_name, env=settings.app_env, level=settings.log_level)
    return logger
