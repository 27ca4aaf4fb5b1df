"""Pydantic schemas: on-disk records and operation results."""
