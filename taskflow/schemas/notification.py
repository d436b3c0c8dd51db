from datetime import datetime
from taskflow.schemas.base import CamelModel

class NotificationResponse(CamelModel):
    id: int
    title: str
    message: str
    type: str
    read: bool
    created_at: datetime
