"""Database layer: ORM models, engine builder, session factory."""
