import logging


class CustomFormatter(logging.Formatter):
    """Logging formatter that prints INFO messages bare.

    WARNING, ERROR and DEBUG records keep their timestamp and level so the
    per-cycle noise stays readable.
    """

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.INFO:
            return record.getMessage()
        return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure the root logger.

    Args:
        verbose: If True, show DEBUG and above with timestamps. Otherwise INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        return

    logger = logging.getLogger()
    if any(isinstance(h.formatter, CustomFormatter) for h in logger.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
