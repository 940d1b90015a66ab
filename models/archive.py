from pydantic import BaseModel, Field
from typing import List, Optional


class ArchiveTrack(BaseModel):
    title: str
    file_name: str
    track_number: Optional[str] = None
    length: Optional[str] = None
    format: Optional[str] = None


class ArchiveShow(BaseModel):
    identifier: str
    title: str = ""
    date: Optional[str] = None
    venue: Optional[str] = None
    tracks: List[ArchiveTrack] = Field(default_factory=list)


class ArchiveSearchPage(BaseModel):
    identifiers: List[str]
    num_found: int
