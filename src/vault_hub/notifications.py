"""Lifecycle events emitted by the transaction orchestrator."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from rich.console import Console

from .domain import MutationKind


class NotificationKind(str, Enum):
    APPROVAL_REQUESTED = "approval_requested"
    APPROVAL_CONFIRMED = "approval_confirmed"
    ACTION_SUBMITTED = "action_submitted"
    ACTION_CONFIRMED = "action_confirmed"
    ERROR = "error"


@dataclass(frozen=True)
class NotificationEvent:
    kind: NotificationKind
    mutation: MutationKind
    wallet: str
    vault_address: str
    message: str
    tx_hash: str | None = None


class BaseNotificationSink(ABC):
    """Receives orchestrator events; delivery is up to the implementation."""

    @abstractmethod
    def emit(self, event: NotificationEvent) -> None: ...


class LoggingNotificationSink(BaseNotificationSink):
    """Writes every event to a logger; errors at ERROR level, the rest at INFO."""

    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or logging.getLogger(__name__)

    def emit(self, event: NotificationEvent) -> None:
        level = logging.ERROR if event.kind is NotificationKind.ERROR else logging.INFO
        self._logger.log(
            level,
            "[%s %s] %s%s",
            event.mutation.value,
            event.kind.value,
            event.message,
            f" (tx {event.tx_hash})" if event.tx_hash else "",
        )


class ConsoleNotificationSink(BaseNotificationSink):
    """Prints events to a rich console, for interactive CLI use."""

    STYLES = {
        NotificationKind.APPROVAL_REQUESTED: "yellow",
        NotificationKind.APPROVAL_CONFIRMED: "green",
        NotificationKind.ACTION_SUBMITTED: "cyan",
        NotificationKind.ACTION_CONFIRMED: "bold green",
        NotificationKind.ERROR: "bold red",
    }

    def __init__(self, console: Console | None = None):
        self._console = console or Console()

    def emit(self, event: NotificationEvent) -> None:
        style = self.STYLES[event.kind]
        line = f"[{style}]{event.message}[/]"
        if event.tx_hash:
            line += f" [dim]{event.tx_hash}[/]"
        self._console.print(line)
