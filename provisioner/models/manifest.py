"""
Version manifest models.
"""

from typing import Dict, List
from pydantic import BaseModel, Field


class ManifestEntry(BaseModel):
    """A single tool pin read from a manifest source."""
    tool_name: str = Field(..., description="Tool name or pinning variable name")
    version: str = Field(..., description="Opaque version token")
    line_number: int = Field(default=0, description="Line in the source, 0 for inline declarations")

    class Config:
        frozen = True


class VersionManifest(BaseModel):
    """Ordered tool pins read from one source."""
    source: str = Field(..., description="Where the pins came from (file path or inline label)")
    entries: List[ManifestEntry] = Field(default_factory=list)

    class Config:
        frozen = True

    def as_dict(self) -> Dict[str, str]:
        """Return the pins as an ordered name -> version mapping."""
        return {entry.tool_name: entry.version for entry in self.entries}
