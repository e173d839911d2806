import logging


def get_logger(name: str = "pyv_ir", level: str = "INFO"):
    """Configures console logging once and returns the package logger at `level`."""
    logging.basicConfig(format="%(levelname)s %(message)s")
    logger = logging.getLogger(name)
    logger.setLevel(str(level).upper())
    return logger
