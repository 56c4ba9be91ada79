import logging

from sqlalchemy.orm import Session

from database.repositories import MatchRepository, FeedbackRepository, SettingsRepository

logger = logging.getLogger(__name__)


class MatchingRepository:
    """Groups the repositories that share one Session (one unit of work)."""

    def __init__(self, db: Session):
        self.db = db
        self.matches = MatchRepository(db)
        self.feedback = FeedbackRepository(db)
        self.settings = SettingsRepository(db)
