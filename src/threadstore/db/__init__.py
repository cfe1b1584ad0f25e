"""Database engine, migrations and repositories."""
