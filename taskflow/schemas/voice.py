from pydantic import Field
from typing import Any, Optional
from taskflow.schemas.base import CamelModel

class VoiceQuery(CamelModel):
    query: str = Field(..., min_length=1, max_length=1000)
    session_id: Optional[str] = None

class VoiceResponse(CamelModel):
    text: str
    data: Optional[Any] = None
