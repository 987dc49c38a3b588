"""Declarative base shared by all ranking models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
