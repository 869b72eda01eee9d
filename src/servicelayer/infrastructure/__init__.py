"""Infrastructure layer — async database access via SQLAlchemy Core."""
