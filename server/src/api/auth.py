import logging
import uuid

from fastapi import APIRouter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/anonymous")
async def sign_in_anonymously():
    """Issue an opaque user id for clients without an identity provider."""
    user_id = uuid.uuid4().hex
    logger.info("Issued anonymous user %s", user_id)
    return {"user_id": user_id}
