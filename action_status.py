# action_status.py

import logging
import sys
import threading
from typing import List, Optional, TextIO

logger = logging.getLogger(__name__)


class ActionStatus:
    """
    Failure status of a single run.

    Failures are written to the CI host as workflow commands (::error::) and
    remembered so the process can exit non-zero. The completion webhook reports
    from its own thread, hence the lock.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream
        self._lock = threading.Lock()
        self.failures: List[str] = []

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stdout

    def _issue(self, command: str, value: str):
        self.stream.write(f"::{command}::{_escape(value)}\n")
        self.stream.flush()

    def set_failed(self, message: str):
        logger.error(message)
        with self._lock:
            self.failures.append(message)
            self._issue("error", message)

    def add_mask(self, secret: str):
        if secret:
            with self._lock:
                self._issue("add-mask", secret)

    @property
    def failed(self) -> bool:
        with self._lock:
            return bool(self.failures)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0


def _escape(value: str) -> str:
    # Workflow command values are single-line.
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
