"""Environment configuration interface for marginalia.

This module provides a clean interface for accessing environment variables,
centralizing all environment variable access in one place.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()


class Environment:
    """Interface for accessing environment configuration."""

    @staticmethod
    def database_path() -> Path:
        """Get the SQLite database file path.

        Returns:
            Path to SQLite database file, defaults to ./data/books.db
        """
        return Path(os.getenv("MARGINALIA_DB_PATH", "./data/books.db"))

    @staticmethod
    def legacy_json_path() -> Path:
        """Get the path of the pre-SQLite books.json file.

        Returns:
            Path to the legacy JSON library, defaults to ./data/books.json
        """
        return Path(os.getenv("MARGINALIA_LEGACY_JSON", "./data/books.json"))

    @staticmethod
    def card_save_delay() -> float:
        """Seconds a card position must stay still before it is written.

        Returns:
            Debounce window, defaults to 0.3
        """
        return float(os.getenv("MARGINALIA_CARD_SAVE_DELAY", "0.3"))

    @staticmethod
    def card_save_max_wait() -> float:
        """Longest a burst of card moves may go unsaved.

        Returns:
            Debounce ceiling, defaults to 1.0
        """
        return float(os.getenv("MARGINALIA_CARD_SAVE_MAX_WAIT", "1.0"))

    @staticmethod
    def connection_save_delay() -> float:
        """Debounce window for full connection replacement.

        Returns:
            Debounce window, defaults to 1.0
        """
        return float(os.getenv("MARGINALIA_CONNECTION_SAVE_DELAY", "1.0"))

    @staticmethod
    def connection_save_max_wait() -> float:
        """Debounce ceiling for full connection replacement.

        Returns:
            Debounce ceiling, defaults to 3.0
        """
        return float(os.getenv("MARGINALIA_CONNECTION_SAVE_MAX_WAIT", "3.0"))


# Singleton instance for convenient access
env = Environment()
