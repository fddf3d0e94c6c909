import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from context_core.config.settings import settings


class JsonFormatter(logging.Formatter):
    def __init__(self, redact: bool = False):
        super().__init__()
        self._redact = redact

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self._redact:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(cfg=settings) -> logging.Logger:
    logger = logging.getLogger("context_core")
    logger.setLevel(getattr(logging, cfg.log_level, logging.INFO))
    # 重复 import / 重复调用时不叠加 handler
    if any(getattr(h, "_context_core", False) for h in logger.handlers):
        return logger
    log_dir = Path(cfg.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "context.log", encoding="utf-8")
    fh.setLevel(logger.level)
    fh.setFormatter(JsonFormatter(redact=cfg.log_redact_content))
    fh._context_core = True  # type: ignore[attr-defined]
    logger.addHandler(fh)
    return logger


logger = setup_logger()
