import logging
from typing import Union

class EmojiFormatter(logging.Formatter):
    """
    Log formatter that prefixes each record with an emoji for its level,
    so token state changes are easy to spot in a busy console.
    """

    LEVEL_EMOJIS = {
        logging.DEBUG: "🐛",
        logging.INFO: "✅",
        logging.WARNING: "⚠️",
        logging.ERROR: "❌",
        logging.CRITICAL: "🔥",
    }

    def format(self, record):
        s = super().format(record)
        emoji = self.LEVEL_EMOJIS.get(record.levelno, "")
        return f"{emoji} {s}"

def setup_logging(level: Union[int, str] = logging.INFO):
    """
    Configures the root logger with the EmojiFormatter.
    Call once from the entry point; library modules only use getLogger(__name__).
    """
    root_logger = logging.getLogger()
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler()
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    console_handler.setFormatter(EmojiFormatter(log_format))

    # Avoid duplicate lines when called twice (e.g. reloads)
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    root_logger.addHandler(console_handler)
