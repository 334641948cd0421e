import json
import sys
from datetime import datetime
from enum import Enum
from typing import Any, Optional

class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"

class Colors:
    """ANSI color codes for console output"""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'

    BRIGHT_BLACK = '\033[90m'
    BRIGHT_RED = '\033[91m'
    BRIGHT_GREEN = '\033[92m'
    BRIGHT_YELLOW = '\033[93m'
    BRIGHT_BLUE = '\033[94m'
    BRIGHT_CYAN = '\033[96m'
    WHITE = '\033[37m'

class CoachDeskLogger:
    """Console logger for CoachDesk services with colorized, key=value context output"""

    MAX_VALUE_LENGTH = 100

    def __init__(self, service_name: str = "COACHDESK", enable_colors: bool = True):
        self.service_name = service_name.upper()
        self.enable_colors = enable_colors

        self.level_colors = {
            LogLevel.DEBUG: Colors.BRIGHT_CYAN,
            LogLevel.INFO: Colors.BRIGHT_BLUE,
            LogLevel.WARNING: Colors.BRIGHT_YELLOW,
            LogLevel.ERROR: Colors.BRIGHT_RED,
            LogLevel.SUCCESS: Colors.BRIGHT_GREEN,
        }

    def _get_timestamp(self) -> str:
        return datetime.now().strftime("%H:%M:%S.%f")[:-3]

    def _colorize(self, text: str, color: str) -> str:
        """Apply color to text if colors are enabled"""
        if not self.enable_colors:
            return text
        return f"{color}{text}{Colors.RESET}"

    def _service_context(self, context: Optional[str]) -> str:
        if context:
            return f"{self.service_name}/{context.upper()}"
        return self.service_name

    def _format_value(self, value: Any) -> str:
        if isinstance(value, (dict, list)):
            value_str = json.dumps(value, default=str, separators=(',', ':'))
        else:
            value_str = str(value)
        if len(value_str) > self.MAX_VALUE_LENGTH:
            value_str = value_str[:self.MAX_VALUE_LENGTH] + "..."
        return value_str

    def format_message(self, level: LogLevel, message: str, context: Optional[str] = None, **kwargs) -> str:
        """Format: [TIMESTAMP] [SERVICE/CONTEXT] [LEVEL] message | key=value, ..."""
        level_color = self.level_colors.get(level, Colors.WHITE)
        level_text = self._colorize(f"[{level.value}]", level_color + Colors.BOLD)
        service_text = self._colorize(f"[{self._service_context(context)}]", Colors.BRIGHT_BLACK)
        timestamp_text = self._colorize(f"[{self._get_timestamp()}]", Colors.DIM)

        formatted = f"{timestamp_text} {service_text} {level_text} {message}"

        if kwargs:
            extras = ", ".join(f"{key}={self._format_value(value)}" for key, value in kwargs.items())
            formatted += self._colorize(f" | {extras}", Colors.DIM)

        return formatted

    def _log(self, level: LogLevel, message: str, context: Optional[str] = None, **kwargs):
        print(self.format_message(level, message, context, **kwargs), file=sys.stdout)
        sys.stdout.flush()

    def debug(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.DEBUG, message, context, **kwargs)

    def info(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.INFO, message, context, **kwargs)

    def warning(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.WARNING, message, context, **kwargs)

    def error(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.ERROR, message, context, **kwargs)

    def success(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.SUCCESS, message, context, **kwargs)


# Global logger instances for different services
sync_logger = CoachDeskLogger("SYNC")
budget_logger = CoachDeskLogger("BUDGET")
assignment_logger = CoachDeskLogger("ASSIGNMENT")
messaging_logger = CoachDeskLogger("WHATSAPP")
