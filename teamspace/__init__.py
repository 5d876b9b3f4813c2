"""Teamspace data layer: configuration, tables, repositories and logging."""
