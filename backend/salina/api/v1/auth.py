"""
Authentication API Routes - API key client-credentials exchange
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from salina.core.database import get_db
from salina.schemas import TokenRequest, TokenResponse
from salina.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/token", response_model=TokenResponse)
async def issue_token(
    credentials: TokenRequest,
    db: Session = Depends(get_db)
):
    """Exchange an API key id and secret for a short-lived bearer token"""
    user_service = UserService(db)
    api_key = user_service.authenticate_api_key(credentials.client_id, credentials.client_secret)
    if api_key is None:
        logger.warning(f"Rejected token request for key {credentials.client_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid client credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token, expires_in = user_service.issue_api_key_token(api_key)
    db.commit()
    return TokenResponse(access_token=token, expires_in=expires_in)
