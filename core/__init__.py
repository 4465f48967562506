"""
Core utilities and configuration for the grade export service.

This package provides foundational components used throughout the export pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Database connection and session management
    events: In-memory lifecycle event bus
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import async_session_maker, check_database
    from core.events import EventBus, EventTypes
    from core.exceptions import SinkImportError, PersistenceError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Get database session
    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "async_session_maker",
    "check_database",
    "setup_logging",
    "EventBus",
    "EventTypes",
    # Exceptions
    "GradeExportException",
    "PersistenceError",
    "SinkError",
    "SinkImportError",
    "SinkTimeout",
    "SinkConnectionError",
    "DataConsistencyError",
    "QueryNotFoundError",
]
