from pydantic import BaseModel
from typing import Literal

ProgressStatus = Literal["idle", "running", "completed", "failed"]


class ProgressEntry(BaseModel):
    artist: str
    status: ProgressStatus = "idle"
    current: int = 0
    total: int = 0
    processed: int = 0
    eta: str = ""
    correlation_id: str = ""
    error: str = ""
    completed_at: str = ""

    @classmethod
    def idle(cls, artist: str) -> "ProgressEntry":
        return cls(artist=artist)
