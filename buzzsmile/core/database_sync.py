import logging

from pymongo import MongoClient

from buzzsmile.core.config import settings

logger = logging.getLogger(__name__)


class MongoDBSync:
    def __init__(self):
        self.client = None
        self.db = None

    def connect(self, uri: str = None, db_name: str = None):
        if self.db is not None:
            return  # already connected

        self.client = MongoClient(uri or settings.MONGO_URI)
        self.db = self.client[db_name or settings.MONGO_DB]
        logger.info("Sync MongoDB connected: %s", self.db.name)

    def close(self):
        if self.client is not None:
            self.client.close()
        self.client = None
        self.db = None


mongodb_sync = MongoDBSync()
