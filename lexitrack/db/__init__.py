"""Persistence layer: SQLAlchemy models, engine setup and the review state store."""
