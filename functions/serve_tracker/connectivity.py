"""
Connection probe that drives the persisted fallback flag.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from serve_tracker.notifications import Notification, NotificationKind, Notifier
from serve_tracker.remote import RemoteBackend
from serve_tracker.session import BackendProvider, SessionState

logger = logging.getLogger(__name__)


@dataclass
class ConnectionStatus:
    connected: bool
    provider: str
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return {"connected": self.connected, "provider": self.provider, "error": self.error}


class ConnectionProber:
    def __init__(self, remote: RemoteBackend, session: SessionState, notifier: Notifier):
        self.remote = remote
        self.session = session
        self.notifier = notifier

    def check_connection(self) -> ConnectionStatus:
        """
        Probe the remote backend once.

        Success clears the fallback and warning flags. Failure sets the
        fallback flag and shows the connection warning once per session.
        """
        if self.session.provider == BackendProvider.LOCAL:
            return ConnectionStatus(connected=False, provider=BackendProvider.LOCAL.value)

        try:
            count = self.remote.probe()
        except Exception as e:
            logger.error("Remote connection check failed: %s", e)
            self.session.use_fallback = True
            if not self.session.warning_shown:
                self.notifier.notify(
                    Notification(
                        kind=NotificationKind.WARNING,
                        title="Remote backend connection failed",
                        description=(
                            "Using local storage as fallback. Data will sync "
                            "when connection is restored."
                        ),
                    )
                )
                self.session.warning_shown = True
            return ConnectionStatus(
                connected=False, provider=BackendProvider.REMOTE.value, error=str(e)
            )

        logger.debug("Remote connection successful, probe returned %d clients", count)
        self.session.use_fallback = False
        self.session.warning_shown = False
        return ConnectionStatus(connected=True, provider=BackendProvider.REMOTE.value)

    def should_use_fallback(self) -> bool:
        return self.session.should_use_fallback()
