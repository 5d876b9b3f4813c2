"""Database layer: SQLModel tables and session management.

The engine module is imported lazily by callers that need the configured
production engine; tests build their own engines.
"""
