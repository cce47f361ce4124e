import logging

FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure the root logger once with a stderr stream handler."""
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    # avoid duplicate handlers
    if not any(getattr(h, "_recycle_indexer", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(FORMAT))
        handler._recycle_indexer = True
        logger.addHandler(handler)
    # web3 logs every ws frame at DEBUG
    logging.getLogger("web3").setLevel(max(logger.level, logging.INFO))
    return logger
