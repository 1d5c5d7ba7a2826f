#!/usr/bin/env python3
"""
Configuration management for the You & Me Expenses assistant.
"""

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class Config:
    """Configuration class for the application."""

    # Database Configuration
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(os.path.dirname(__file__), "..", "data", "youandme.db"),
    )

    # Language Configuration
    DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "en").lower()
    SUPPORTED_LANGUAGES = tuple(
        lang.strip().lower()
        for lang in os.getenv("SUPPORTED_LANGUAGES", "en,el,es,fr").split(",")
        if lang.strip()
    )
    CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "€")

    # Dialogue Configuration
    MAX_HISTORY_TURNS = int(os.getenv("MAX_HISTORY_TURNS", 3))
    MAX_SUGGESTIONS = int(os.getenv("MAX_SUGGESTIONS", 8))

    # Collaborator calls (seconds)
    EXTERNAL_FETCH_TIMEOUT = float(os.getenv("EXTERNAL_FETCH_TIMEOUT", 5.0))

    # Application Configuration
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    @classmethod
    def validate(cls):
        """Validate that the configuration is usable."""
        problems = []

        if cls.DEFAULT_LANGUAGE != "en" and cls.DEFAULT_LANGUAGE not in cls.SUPPORTED_LANGUAGES:
            problems.append("DEFAULT_LANGUAGE")
        # every user-facing string must exist in English
        if "en" not in cls.SUPPORTED_LANGUAGES:
            problems.append("SUPPORTED_LANGUAGES")
        # history lookback is bounded to the last three turns
        if not 1 <= cls.MAX_HISTORY_TURNS <= 3:
            problems.append("MAX_HISTORY_TURNS")
        if not 1 <= cls.MAX_SUGGESTIONS <= 8:
            problems.append("MAX_SUGGESTIONS")
        if cls.EXTERNAL_FETCH_TIMEOUT <= 0:
            problems.append("EXTERNAL_FETCH_TIMEOUT")

        if problems:
            raise ValueError(f"Invalid configuration: {', '.join(problems)}")

        return True

# Validate configuration on import
Config.validate()
