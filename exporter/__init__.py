"""
Grade export pipeline components.

This package contains everything that moves gradebook data from the host
into an external datastore:

Modules:
    base: Collaborator interfaces (GradeSource, ExternalSink, SinkSession)
    context: Per-run snapshot cache for one query
    queries: Export query persistence with lifecycle events
    engine: Export orchestrator (pull -> pre-export -> send -> record -> post-export)
    history: Export history persistence and lookups
    scheduler: APScheduler integration for automated queries

Subpackages:
    sources: Host gradebook readers
    sinks: External datastore writers

Architecture:
    One export run for one query goes through:

    1. Pull - Resolve the grade item, the gradable users and their grades
    2. Pre-export - Listeners may adjust the user and grade snapshots
    3. Send - Import each non-empty grade; each result is a success or an error
    4. Record - Persist the run and every attempted user grade
    5. Post-export - Listeners receive successes and errors

    A rejected or failed import only affects that user.

Usage:
    from exporter.engine import ExportEngine
    from exporter.history import HistoryStore
    from exporter.sources.sql_source import SQLGradeSource
    from exporter.sinks.factory import build_sink

Example:
    engine = ExportEngine(
        source=SQLGradeSource(session),
        history=HistoryStore(session),
        event_bus=get_event_bus()
    )
    outcome = await engine.export_grades(query, build_sink(query))

    if outcome is not None:
        print(f"{len(outcome.errors)} grades rejected")
"""

__all__ = [
    "GradeSource",
    "ExternalSink",
    "SinkSession",
    "ExportContext",
    "QueryRepository",
    "ExportEngine",
    "HistoryStore",
    "ExportScheduler",
]
