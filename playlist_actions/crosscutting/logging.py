import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from contextvars import ContextVar

# Context variables for correlation
username_var: ContextVar[Optional[str]] = ContextVar('username', default=None)
playlist_id_var: ContextVar[Optional[str]] = ContextVar('playlist_id', default=None)
stage_var: ContextVar[Optional[str]] = ContextVar('stage', default=None)

# JSON key written for each correlation variable that is set
_CORRELATION_FIELDS: Tuple[Tuple[str, ContextVar], ...] = (
    ('user', username_var),
    ('playlistId', playlist_id_var),
    ('stage', stage_var),
)


class SecretMasker:
    """Masks credentials of the library server in log messages.

    Each rule is a pattern whose first group names the credential and whose
    second group is the value to hide, plus the separator written back
    between them.
    """

    def __init__(self):
        self.rules: List[Tuple[re.Pattern, str]] = [
            # Session tokens, passwords and keys, e.g. "token=..." or "password: ..."
            (re.compile(r'(?i)(token|key|secret|password|auth)\s*[:=]\s*["\']?([\w\-.]{10,})["\']?'), ': '),
            # Server auth header, e.g. "x-nd-authorization: Bearer eyJ..."
            (re.compile(r'(?i)(x-nd-authorization)\s*[:=]\s*["\']?(?:bearer\s+)?([\w\-.]{20,})["\']?'), ': '),
            (re.compile(r'(?i)(bearer)\s+([\w\-.]{20,})'), ' '),
            # Subsonic-style salted token and salt in URLs
            (re.compile(r'(?i)([?&][ts])=([a-zA-Z0-9]{6,})'), '='),
        ]

    @staticmethod
    def _hide(secret: str) -> str:
        if len(secret) <= 8:
            return '*' * len(secret)
        return secret[:4] + '*' * (len(secret) - 8) + secret[-4:]

    def mask_secrets(self, text: str) -> str:
        """Mask sensitive information in text."""
        if not text:
            return text
        for pattern, separator in self.rules:
            text = pattern.sub(
                lambda match, sep=separator: f"{match.group(1)}{sep}{self._hide(match.group(2))}",
                text,
            )
        return text

    def _mask_value(self, value: Any) -> Any:
        """Mask strings anywhere inside nested dicts, lists and tuples."""
        if isinstance(value, str):
            return self.mask_secrets(value)
        if isinstance(value, dict):
            return self.mask_dict(value)
        if isinstance(value, (list, tuple)):
            return [self._mask_value(item) for item in value]
        return value

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data:
            return data
        return {key: self._mask_value(value) for key, value in data.items()}


class StructuredFormatter(logging.Formatter):
    """Renders each record as one JSON object carrying the correlation context."""

    def __init__(self):
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            'ts': datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': self.masker.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for key, var in _CORRELATION_FIELDS:
            value = var.get()
            if value:
                log_entry[key] = value

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        fields = getattr(record, 'fields', None)
        if fields:
            log_entry['fields'] = self.masker.mask_dict(fields)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class CorrelationContext:
    """Sets the user, playlist and stage seen by every record logged inside it.

    Values left as None keep whatever the enclosing context set. Safe to nest
    and to use across ``await`` since each task has its own context copy.
    """

    def __init__(self, username: Optional[str] = None,
                 playlist_id: Optional[str] = None,
                 stage: Optional[str] = None):
        self._values = ((username_var, username),
                        (playlist_id_var, playlist_id),
                        (stage_var, stage))
        self._tokens = []

    def __enter__(self):
        for var, value in self._values:
            if value is not None:
                self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None,
                  username: Optional[str] = None) -> logging.Logger:
    """Send the package's logs as JSON to stderr and, optionally, a file."""
    logger = logging.getLogger('playlist_actions')
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    formatter = StructuredFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if username:
        username_var.set(username)

    return logger


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None,
                    exc_info: bool = False, **kwargs) -> None:
    """Log message with additional fields."""
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return

    merged = dict(fields or {})
    merged.update(kwargs)
    extra = {'fields': merged} if merged else None
    logger.log(levelno, message, exc_info=exc_info, extra=extra, stacklevel=2)


def log_error(logger: logging.Logger, message: str, error: Exception, **kwargs) -> None:
    """Log error with exception details."""
    fields = {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    }
    logger.error(message, exc_info=(type(error), error, error.__traceback__),
                 extra={'fields': fields}, stacklevel=2)
