"""Notification dedup gate shared by all scorers."""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from loguru import logger

from ..storage.database import Database
from .notifications import NotificationDraft


class NotificationGate:
    """Persist notifications unless the same (type, subject) was sent recently.

    The check reads back the metadata of recent notifications and is not
    transactional: two runs racing on the same subject can each persist one
    copy within a window.
    """

    def __init__(self, db: Database, window_hours: int = 24):
        """Initialize notification gate.

        Args:
            db: Database instance
            window_hours: Rolling suppression window
        """
        self.db = db
        self.window = timedelta(hours=window_hours)

    def submit(self, drafts: Iterable[NotificationDraft], now: Optional[datetime] = None) -> int:
        """Store the drafts that pass the gate.

        Args:
            drafts: Candidate notifications
            now: Reference time for the window

        Returns:
            Number of notifications persisted
        """
        drafts = list(drafts)
        if not drafts:
            return 0

        now = now or datetime.utcnow()
        since = now - self.window

        loaded_types = set()
        seen: set[tuple[str, str]] = set()
        fresh = []
        for draft in drafts:
            if draft.type not in loaded_types:
                subjects = self.db.get_recent_notification_subjects(draft.type, since)
                seen.update((draft.type, subject_id) for subject_id in subjects)
                loaded_types.add(draft.type)

            if draft.dedup_key in seen:
                logger.debug(f"Suppressed duplicate {draft.type} notification for {draft.subject_id}")
                continue

            seen.add(draft.dedup_key)
            fresh.append(draft)

        if fresh:
            self.db.add_notifications([draft.to_row() for draft in fresh])

        suppressed = len(drafts) - len(fresh)
        if suppressed:
            logger.info(f"Notification gate suppressed {suppressed} of {len(drafts)} notifications")

        return len(fresh)
