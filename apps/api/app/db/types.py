"""Portable column types shared by the ORM models."""

from __future__ import annotations

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on Postgres, plain JSON elsewhere (SQLite for local dev and tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")
