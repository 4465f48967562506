"""
External datastore sinks.

Modules:
    database_sink: Upsert into a table of an external database
    http_sink: POST each grade to a REST endpoint
    factory: Build the sink configured by SINK_TYPE for a query
"""

__all__ = [
    "ExternalDatabaseSink",
    "HTTPSink",
    "build_sink",
]
