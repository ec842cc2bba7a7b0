from loguru import logger


def log_storage_error(context: str, exc: Exception) -> None:
    logger.error("Storage error in {}: {}", context, exc)
