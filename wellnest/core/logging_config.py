import os
import re
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional


class SecurityFilter(logging.Filter):
    """Filter to remove sensitive information from logs while preserving context"""

    SENSITIVE_PATTERNS = [
        # JWT tokens (eyJ...)
        (r'eyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*', '[JWT_TOKEN]'),
        # Bearer tokens
        (r'Bearer\s+[A-Za-z0-9._-]+', 'Bearer [TOKEN]'),
        # Password values
        (r'password["\s]*[:=]["\s]*[^,}\s]+', 'password: [HIDDEN]'),
        # Secret keys and PayWay tokens
        (r'secret["\s]*[:=]["\s]*[^,}\s]+', 'secret: [HIDDEN]'),
        (r'token_?(auth|encrypt)["\s]*[:=]["\s]*[^,}\s]+', 'token: [HIDDEN]'),
        # Card numbers (13-19 digits, optionally grouped)
        (r'\b(?:\d[ -]?){12,18}\d\b', '[CARD]'),
        # Guest invitation tokens
        (r'invitation_token["\s]*[:=]["\s]*[a-f0-9]{16,}', 'invitation_token: [TOKEN]'),
    ]

    def filter(self, record):
        if hasattr(record, 'msg'):
            msg = str(record.msg)

            for pattern, replacement in self.SENSITIVE_PATTERNS:
                msg = re.sub(pattern, replacement, msg, flags=re.IGNORECASE)

            record.msg = msg
        return True


def setup_logging():
    """Configure application logging based on environment variables"""

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    sql_log_level = os.getenv("SQL_LOG_LEVEL", "WARNING").upper()
    log_format = os.getenv("LOG_FORMAT", "text").lower()

    # Default log file sits next to the package regardless of CWD
    default_log_path = Path(__file__).resolve().parents[2] / "logs" / "wellnest.log"
    log_file_path = os.getenv("LOG_FILE_PATH", str(default_log_path))
    payment_log_events = os.getenv("PAYMENT_LOG_EVENTS", "true").lower() == "true"
    enable_security_filter = os.getenv("ENABLE_SECURITY_FILTER", "false").lower() == "true"

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    if log_format == "json":
        formatter = logging.Formatter(
            '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
            '"module": "%(name)s", "message": "%(message)s", '
            '"line": %(lineno)d, "function": "%(funcName)s"}'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))
    root_logger.handlers.clear()

    security_filter = SecurityFilter() if enable_security_filter else None

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_level, logging.INFO))
    console_handler.setFormatter(formatter)
    if security_filter:
        console_handler.addFilter(security_filter)
    root_logger.addHandler(console_handler)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file_path,
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5
    )
    file_handler.setLevel(getattr(logging, log_level, logging.INFO))
    file_handler.setFormatter(formatter)
    if security_filter:
        file_handler.addFilter(security_filter)
    root_logger.addHandler(file_handler)

    sql_logger = logging.getLogger('sqlalchemy.engine')
    sql_logger.setLevel(getattr(logging, sql_log_level, logging.WARNING))

    app_logger = logging.getLogger('wellnest')
    app_logger.setLevel(getattr(logging, log_level, logging.INFO))

    payments_logger = logging.getLogger('wellnest.payments')
    payments_logger.setLevel(logging.INFO if payment_log_events else logging.ERROR)

    root_logger.info(
        "Logging initialized level=%s sql=%s file=%s",
        log_level,
        sql_log_level,
        log_file_path,
    )

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given module name"""
    return logging.getLogger(f"wellnest.{name}")


def log_payment_event(event_type: str, order_id: Optional[int] = None,
                      provider: Optional[str] = None, success: bool = True,
                      details: Optional[str] = None):
    """Log payment provider events (callbacks, confirmations, refunds)"""
    payments_logger = get_logger("payments")
    suffix = f" - {details}" if details else ""

    if success:
        payments_logger.info(
            "Payment %s ok - order: %s provider: %s%s",
            event_type, order_id if order_id is not None else "unknown", provider or "unknown", suffix,
        )
    else:
        payments_logger.warning(
            "Payment %s failed - order: %s provider: %s%s",
            event_type, order_id if order_id is not None else "unknown", provider or "unknown", suffix,
        )


def log_security_event(event_type: str, details: str, level: str = "WARNING"):
    """Log security-related events"""
    security_logger = get_logger("security")
    log_level = getattr(logging, level.upper(), logging.WARNING)
    security_logger.log(log_level, "Security event: %s - %s", event_type, details)
