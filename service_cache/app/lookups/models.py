"""
Lookup option models.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class LookupOption(BaseModel):
    """A value/label pair suitable for select inputs."""

    value: str
    label: str
    code: Optional[str] = None
    parent_id: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)
