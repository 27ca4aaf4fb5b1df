"""
Shared Pydantic base models.

Operation results inherit from StrictModel. On-disk records inherit from
RecordModel, which keeps fields the host adds that we don't model.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Base model with strict validation settings."""

    model_config = ConfigDict(
        extra='forbid',  # Raise error on unexpected fields
        strict=True,  # Strict type validation
        frozen=True,  # Immutable (cannot modify after creation)
    )


class RecordModel(BaseModel):
    """Base model for records read from the opencode storage tree.

    The host writes more fields than we type here and adds new ones between
    releases, so unknown fields are kept and round-trip through model_dump.
    """

    model_config = ConfigDict(
        extra='allow',
        populate_by_name=True,
    )
