#!/usr/bin/env python3
"""
Shared SQLAlchemy base and mixins for the Security Auth API.

- Integer surrogate primary key (the auth tokens carry it as the `sub` claim)
- created_at / updated_at timestamps
- save() and delete() that use the DBStorage singleton
- to_dict() that formats timestamps, removes SA internals, adds __class__

Notes:
- We use server-side defaults (func.now()) so timestamps are set consistently by the DB.
- For SQLite, func.now() maps to CURRENT_TIMESTAMP.
"""

from __future__ import annotations

from datetime import datetime, timezone

# Importing 'models' gives access to the global 'storage' instance (DBStorage)
# defined in models/__init__.py
import models

from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

TIME_FMT = "%Y-%m-%dT%H:%M:%S.%f"

# Declarative base for all models
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC now; the lifecycle columns store naive UTC values."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel:
    """
    Base mixin for all persistent models.

    - id, created_at, updated_at
    - save(), delete() wired to DBStorage
    - to_dict() with __class__ and timestamp formatting
    """

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    def __init__(self, *args, **kwargs):
        """
        Allow attribute initialization via kwargs without requiring a session here.
        created_at/updated_at are left to the DB defaults unless passed explicitly.
        """
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)

    def __str__(self) -> str:
        """Human-friendly representation including id and fields."""
        return f"[{self.__class__.__name__}] ({self.id}) {self.__dict__}"

    def save(self):
        """Update updated_at and persist the instance using DBStorage."""
        self.updated_at = utcnow()
        models.storage.new(self)
        models.storage.save()

    def delete(self):
        """
        Hard delete the current instance using DBStorage.
        The caller decides when to commit.
        """
        models.storage.delete(self)

    def to_dict(self) -> dict:
        """
        Return a dictionary of fields suitable for logging and debugging:
        - Adds __class__
        - Formats created_at / updated_at to TIME_FMT
        - Removes SQLAlchemy internal state and the password hash
        """
        d = {k: v for k, v in self.__dict__.items() if k != "_sa_instance_state"}
        if isinstance(d.get("created_at"), datetime):
            d["created_at"] = d["created_at"].strftime(TIME_FMT)
        if isinstance(d.get("updated_at"), datetime):
            d["updated_at"] = d["updated_at"].strftime(TIME_FMT)
        d["__class__"] = self.__class__.__name__
        d.pop("password_hash", None)
        return d
