# Structured, localizable-style messages for the generator.
#
# Every message carries a stable key (used by tooling to recognise it), a
# %-style template and positional values. Messages go to the standard logging
# module and are also recorded so callers can inspect what a run reported.

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SYSLOG = "syslog"
    DEBUG = "debug"


_LOG_LEVELS = {
    Severity.ERROR: logging.ERROR,
    Severity.WARNING: logging.WARNING,
    Severity.INFO: logging.INFO,
    Severity.SYSLOG: logging.INFO,
    Severity.DEBUG: logging.DEBUG,
}


@dataclass(frozen=True)
class LogMessage:
    severity: Severity
    key: Optional[str]
    text: str
    context: Optional[str] = None
    values: Tuple[str, ...] = ()
    details: Optional[str] = None


@dataclass
class ProfilingToken:
    name: str
    context: Optional[str]
    start: float = field(default_factory=time.perf_counter)


class MessageLogger:
    def __init__(self, log: logging.Logger = logger):
        self.log = log
        self.messages: List[LogMessage] = []
        self.timings: Dict[str, float] = {}

    def _emit(
        self,
        severity: Severity,
        key: Optional[str],
        template: str,
        values: Tuple[object, ...],
        context: Optional[str],
        details: Optional[str],
    ) -> LogMessage:
        text = template % values if values else template
        message = LogMessage(
            severity=severity,
            key=key,
            text=text,
            context=context,
            values=tuple(str(v) for v in values),
            details=details,
        )
        self.messages.append(message)
        prefix = f"[{key}] " if key else ""
        suffix = f" ({details})" if details else ""
        if context:
            self.log.log(_LOG_LEVELS[severity], "%s: %s%s%s", context, prefix, text, suffix)
        else:
            self.log.log(_LOG_LEVELS[severity], "%s%s%s", prefix, text, suffix)
        return message

    def error(self, key: str, template: str, *values: object, context: Optional[str] = None, details: Optional[str] = None) -> LogMessage:
        return self._emit(Severity.ERROR, key, template, values, context, details)

    def warning(self, key: str, template: str, *values: object, context: Optional[str] = None, details: Optional[str] = None) -> LogMessage:
        return self._emit(Severity.WARNING, key, template, values, context, details)

    def info(self, text: str, *values: object, context: Optional[str] = None) -> LogMessage:
        return self._emit(Severity.INFO, None, text, values, context, None)

    def syslog(self, text: str, *values: object, context: Optional[str] = None) -> LogMessage:
        return self._emit(Severity.SYSLOG, None, text, values, context, None)

    def debug(self, text: str, *values: object, context: Optional[str] = None) -> LogMessage:
        return self._emit(Severity.DEBUG, None, text, values, context, None)

    def start_profiling(self, name: str, context: Optional[str] = None) -> ProfilingToken:
        return ProfilingToken(name=name, context=context)

    def end_profiling(self, token: ProfilingToken) -> float:
        elapsed = time.perf_counter() - token.start
        self.timings[token.name] = self.timings.get(token.name, 0.0) + elapsed
        self.log.debug("%s took %.3fs", token.name, elapsed)
        return elapsed

    @contextmanager
    def profile(self, name: str, context: Optional[str] = None) -> Iterator[ProfilingToken]:
        token = self.start_profiling(name, context)
        try:
            yield token
        finally:
            self.end_profiling(token)

    def messages_with_key(self, key: str) -> List[LogMessage]:
        return [m for m in self.messages if m.key == key]
