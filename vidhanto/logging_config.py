import logging

from vidhanto.config import LOG_LEVEL

_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()) | {"message", "asctime"}


class KeyValueFormatter(logging.Formatter):
    """Render records as a single ``key=value`` line.

    Anything passed through ``extra=`` is appended after the message, so
    ``logger.info("transition", extra={"entity": "appointment"})`` becomes
    ``... msg="transition" entity=appointment``.
    """

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            f"ts={self.formatTime(record, '%Y-%m-%dT%H:%M:%S')}",
            f"level={record.levelname}",
            f"logger={record.name}",
            f'msg="{record.getMessage()}"',
        ]
        for key, value in record.__dict__.items():
            if key in _RESERVED or key.startswith("_"):
                continue
            parts.append(f"{key}={value}")
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(level: str = LOG_LEVEL) -> None:
    root = logging.getLogger()
    if any(isinstance(h.formatter, KeyValueFormatter) for h in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(KeyValueFormatter())
    root.addHandler(handler)
    root.setLevel(level.upper())
