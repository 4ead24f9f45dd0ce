"""
Persistent store for EduPlan.

Two scopes are kept apart:

* the session scope holds the login flags and lives as long as the browser
  session (any mutable mapping works: the Flask session in the web app, a
  plain dict in the CLI);
* the durable scope holds the lesson plan history in the ``records`` table
  and survives logout and restarts.

The history is always written wholesale; there are no partial updates.
"""

import logging
import threading

from eduplan.database import Record, get_session
from eduplan.models import LessonPlan, Session, Tier

logger = logging.getLogger(__name__)

AUTH_KEY = "eduplan_auth"
TIER_KEY = "eduplan_plan"
HISTORY_KEY = "eduplan_history"
HISTORY_VERSION = 1

_history_lock = threading.Lock()


class PersistentStore:
    """Reads and writes the session flags and the plan history.

    Args:
        engine: SQLAlchemy engine for the durable scope.
        session_scope: Mutable mapping for the session scope.
    """

    def __init__(self, engine, session_scope=None):
        self._engine = engine
        self._session_scope = session_scope if session_scope is not None else {}

    # --- Session scope ---

    def load_session(self):
        """Return the stored Session, or an anonymous one."""
        if self._session_scope.get(AUTH_KEY) != "true":
            return Session()
        try:
            tier = Tier(self._session_scope.get(TIER_KEY))
        except ValueError:
            return Session()
        if tier is Tier.NONE:
            return Session()
        return Session(authenticated=True, tier=tier)

    def save_session(self, session):
        if not session.authenticated:
            self.clear_session()
            return
        self._session_scope[AUTH_KEY] = "true"
        self._session_scope[TIER_KEY] = session.tier.value

    def clear_session(self):
        self._session_scope.pop(AUTH_KEY, None)
        self._session_scope.pop(TIER_KEY, None)

    # --- Durable scope ---

    def load_history(self):
        """Return the saved plans, newest first.

        A record written by an unknown format version is left untouched
        and reported as an empty history.
        """
        db = get_session(self._engine)
        try:
            record = db.get(Record, HISTORY_KEY)
            if record is None:
                return []
            if record.version != HISTORY_VERSION:
                logger.warning(
                    "Ignoring history record with unsupported version %s (expected %s)",
                    record.version,
                    HISTORY_VERSION,
                )
                return []
            plans = []
            for entry in (record.value or {}).get("plans", []):
                try:
                    plans.append(LessonPlan.from_dict(entry))
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning("Skipping unreadable history entry: %s", e)
            return plans
        finally:
            db.close()

    def save_history(self, plans):
        """Replace the stored history with ``plans``."""
        payload = {"version": HISTORY_VERSION, "plans": [p.to_dict() for p in plans]}
        db = get_session(self._engine)
        try:
            record = db.get(Record, HISTORY_KEY)
            if record is None:
                record = Record(key=HISTORY_KEY)
                db.add(record)
            record.version = HISTORY_VERSION
            record.value = payload
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        logger.debug("Saved history with %d plans", len(plans))

    def update_history(self, mutate):
        """Load the history, apply ``mutate`` to it and save the result.

        Every browser session shares the one history record, so the
        read-modify-write runs under a process-wide lock against the
        latest saved copy rather than a session's in-memory one.

        Returns:
            The saved history as a tuple.
        """
        with _history_lock:
            plans = tuple(mutate(tuple(self.load_history())))
            self.save_history(plans)
        return plans
