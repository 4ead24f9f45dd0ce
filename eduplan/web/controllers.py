"""
Per-browser-session workflow controllers.

Each browser session gets its own WorkflowController, found through a
random token kept in the Flask session. Controllers live in process memory;
the oldest ones are dropped (and their cameras released) past
``max_sessions``.
"""

import logging
import secrets
import threading
from collections import OrderedDict

logger = logging.getLogger(__name__)

TOKEN_KEY = "eduplan_sid"


class ControllerRegistry:
    def __init__(self, max_sessions=256):
        self.max_sessions = max_sessions
        self._controllers = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._controllers)

    def get(self, token):
        with self._lock:
            controller = self._controllers.get(token)
            if controller is not None:
                self._controllers.move_to_end(token)
            return controller

    def add(self, controller):
        """Register ``controller`` and return its new token."""
        token = secrets.token_urlsafe(24)
        with self._lock:
            self._controllers[token] = controller
            while len(self._controllers) > self.max_sessions:
                _, evicted = self._controllers.popitem(last=False)
                evicted.close_camera()
                logger.info("Evicted idle session controller")
        return token

    def discard(self, token):
        with self._lock:
            controller = self._controllers.pop(token, None)
        if controller is not None:
            controller.close_camera()

    def controllers(self):
        with self._lock:
            return list(self._controllers.values())

    def rekey(self, token, controller):
        """Move ``controller`` to a fresh token, dropping ``token``."""
        with self._lock:
            self._controllers.pop(token, None)
        return self.add(controller)
