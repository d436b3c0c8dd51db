from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from taskflow.database import get_db
from taskflow.core.auth import get_current_user
from taskflow.schemas.voice import VoiceQuery, VoiceResponse
from taskflow.services.voice import answer

router = APIRouter(prefix="/api/voice-agent", tags=["voice"])


@router.post("", response_model=VoiceResponse)
async def voice_agent(
    query_in: VoiceQuery,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    # Always 200: unmatched or incomplete commands come back as guidance text
    return await answer(db, current_user, query_in.query)
