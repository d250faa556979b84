"""
Structured logging utilities for tradeguard.

Provides JSON-formatted logs with daily file names and sensitive data redaction.
"""
import logging
import json
import os
import re
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional

# Sensitive field patterns to redact
SENSITIVE_PATTERNS = [
    r'(?i)(password|passwd|pwd)',
    r'(?i)(api[_-]?key|apikey)',
    r'(?i)(secret|token)',
    r'(?i)(auth)',
]

# Structured fields copied from `extra=` into the JSON record
EXTRA_FIELDS = (
    'asset',
    'side',
    'size',
    'price',
    'position_id',
    'strategy',
    'reason',
    'alert_level',
    'event_type',
)

DEFAULT_LOG_DIR = "logs"


class SensitiveDataFilter(logging.Filter):
    """Filter to redact sensitive data from log records"""

    def filter(self, record: logging.LogRecord) -> bool:
        if hasattr(record, 'msg') and isinstance(record.msg, str):
            for pattern in SENSITIVE_PATTERNS:
                record.msg = re.sub(
                    rf'{pattern}[\'\"]?\s*[:=]\s*[\'\"]?([^\s\'"]+)',
                    r'\1=***REDACTED***',
                    record.msg,
                    flags=re.IGNORECASE
                )
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def get_logger(name: str, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Get a structured logger with JSON file output and a console handler.

    Args:
        name: Logger name (usually __name__)
        log_dir: Directory to store log files. Defaults to $TRADEGUARD_LOG_DIR or "logs".

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)

    log_dir = log_dir or os.getenv("TRADEGUARD_LOG_DIR", DEFAULT_LOG_DIR)
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    # Per-day file plus a stable file name for tools that tail the log
    date_str = datetime.now().strftime("%Y%m%d")
    daily_file = os.path.join(log_dir, f"tradeguard_{date_str}.log")
    stable_file = os.path.join(log_dir, "tradeguard.log")
    for path in (daily_file, stable_file):
        handler = logging.FileHandler(filename=path, encoding='utf-8', delay=True)
        handler.setFormatter(JSONFormatter())
        handler.addFilter(SensitiveDataFilter())
        logger.addHandler(handler)

    # Console handler (human-readable)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    console_handler.addFilter(SensitiveDataFilter())
    logger.addHandler(console_handler)

    return logger


class TradeLogger:
    """Context manager for logging trade decisions and executions"""

    def __init__(self, logger: logging.Logger, asset: str, strategy: str):
        self.logger = logger
        self.asset = asset
        self.strategy = strategy
        self.start_time = None

    def __enter__(self):
        self.start_time = datetime.now(timezone.utc)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.logger.error(
                f"Strategy execution failed for {self.asset}",
                extra={
                    'asset': self.asset,
                    'strategy': self.strategy,
                    'event_type': 'strategy_error',
                },
                exc_info=True
            )
        return False

    def _elapsed_ms(self) -> float:
        if self.start_time is None:
            return 0.0
        return (datetime.now(timezone.utc) - self.start_time).total_seconds() * 1000

    def log_decision(self, action: str, side: Optional[str], size: float, price: float, reason: str):
        """Log a strategy decision"""
        self.logger.info(
            f"Decision: {action} {side or ''} {size} {self.asset} @ {price} ({reason})",
            extra={
                'asset': self.asset,
                'strategy': self.strategy,
                'side': side,
                'size': size,
                'price': price,
                'reason': reason,
                'event_type': 'decision',
            }
        )

    def log_execution(self, position_id: str, side: str, size: float, fill_price: float):
        """Log an executed open or close"""
        self.logger.info(
            f"Executed: {side} {size} {self.asset} @ {fill_price} in {self._elapsed_ms():.1f}ms",
            extra={
                'position_id': position_id,
                'asset': self.asset,
                'strategy': self.strategy,
                'side': side,
                'size': size,
                'price': fill_price,
                'event_type': 'execution',
            }
        )
