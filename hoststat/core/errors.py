from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class HoststatError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": dict(self.context or {}),
        }


class ConfigError(HoststatError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class CounterUnavailableError(HoststatError):
    """A raw counter could not be read this tick."""

    def __init__(self, user_message: str = "Counter unavailable.", **ctx: Any):
        super().__init__("counter_unavailable", user_message, severity=Severity.WARN, recoverable=True, context=ctx)


class ReadTimeoutError(HoststatError):
    def __init__(self, user_message: str = "Counter read timed out.", **ctx: Any):
        super().__init__("read_timeout", user_message, severity=Severity.WARN, recoverable=True, context=ctx)
