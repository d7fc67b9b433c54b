"""
Database model registry.

Importing this module ensures all table models are registered with
SQLModel's metadata, which is required before calling ``create_all()``
or generating Alembic migrations.
"""

from sqlmodel import SQLModel

import app.models  # noqa: F401

metadata = SQLModel.metadata
