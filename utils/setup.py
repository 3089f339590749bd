import logging
import sys

from utils.config import APP_CONFIG


def configure_logging(level: str | int | None = None, console: bool | None = None) -> None:
    """
    Configure the logging system for the bootstrap tools.
    Records always go to the log file in config.json; `console` mirrors them to stderr.
    """
    if level is None:
        level = APP_CONFIG.get("log", "level", "INFO")
    if console is None:
        console = APP_CONFIG.get("log", "console", True)

    log_path = APP_CONFIG.get("path", "log")
    handlers: list[logging.Handler] = []
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="a", encoding="utf-8"))
    if console or not handlers:
        handlers.append(logging.StreamHandler(sys.stderr))

    logging.basicConfig(
        level=level.upper() if isinstance(level, str) else level,
        format=(
            "%(asctime)s - %(levelname)s - "
            "%(filename)s:%(lineno)d - "
            "%(funcName)s() - "
            "%(message)s"
        ),
        handlers=handlers,
        force=True,
    )
