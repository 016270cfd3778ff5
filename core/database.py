"""
MongoDB connection with an explicit open/close lifetime.

The connection is constructed by the caller (a job's main(), a test) and
handed to the repositories; nothing here is a module-level singleton.

Usage:
    with MongoConnection() as db:
        sales = MongoSaleRepository(db)
        ...
"""
from typing import Optional

from pymongo import MongoClient
from pymongo.database import Database

from core.config import config
from core.logging import get_logger

logger = get_logger("database")

# Collection names
SALES_COLLECTION = "individual_sales"
CURRENT_MARKET_COLLECTION = "current_market"
PRICE_HISTORY_COLLECTION = "price_history"
BASELINE_COLLECTION = "baseline_prices"


class MongoConnection:
    """Owns one MongoClient for the lifetime of a job."""

    def __init__(self, uri: Optional[str] = None, database_name: Optional[str] = None):
        self.uri = uri or config.MONGO_URI
        self.database_name = database_name or config.DATABASE_NAME
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

    @property
    def database(self) -> Database:
        if self._database is None:
            raise RuntimeError("MongoConnection is not open")
        return self._database

    def open(self) -> Database:
        """
        Connect and return the database handle.

        Returns:
            Database: The MongoDB database object.
        """
        if self._database is not None:
            return self._database

        logger.info("Connecting to MongoDB", extra={"database": self.database_name})
        try:
            self._client = MongoClient(self.uri)
            self._database = self._client[self.database_name]
        except Exception:
            logger.error("Failed to connect to MongoDB", exc_info=True)
            raise
        logger.info("Connected to MongoDB", extra={"database": self.database_name})
        return self._database

    def close(self):
        """Close the database connection."""
        if self._client is None:
            return
        try:
            self._client.close()
            logger.info("Database connection closed")
        except Exception:
            logger.error("Error closing database connection", exc_info=True)
        finally:
            self._client = None
            self._database = None

    def __enter__(self) -> Database:
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
