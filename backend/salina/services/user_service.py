"""
User Service - users and API key credentials
"""
from datetime import datetime, timedelta
from typing import Optional, Tuple
import logging
import secrets

from sqlalchemy.orm import Session

from salina.core.config import settings
from salina.core.security import create_access_token, get_secret_hash, verify_secret
from salina.models import ApiKey, User

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_api_key(self, key_id: str) -> Optional[ApiKey]:
        return self.db.query(ApiKey).filter(ApiKey.key_id == key_id).first()

    def issue_user_token(self, user: User) -> str:
        return create_access_token({
            "sub": str(user.id),
            "tenant_id": user.tenant_id,
            "role": user.role,
        })

    def create_api_key(self, tenant_id: int, name: str, role: str) -> Tuple[ApiKey, str]:
        """
        Create API key credentials for a tenant.

        Returns:
            The stored key and the plaintext secret. The secret is only
            available here; the database keeps its bcrypt hash.
        """
        key_id = f"sk_{secrets.token_hex(12)}"
        secret = secrets.token_urlsafe(32)
        api_key = ApiKey(
            tenant_id=tenant_id,
            key_id=key_id,
            secret_hash=get_secret_hash(secret),
            name=name,
            role=role,
        )
        self.db.add(api_key)
        self.db.flush()
        logger.info(f"API key {key_id} created for tenant {tenant_id}")
        return api_key, secret

    def revoke_api_key(self, api_key: ApiKey) -> ApiKey:
        api_key.revoked_at = datetime.utcnow()
        self.db.flush()
        logger.info(f"API key {api_key.key_id} revoked")
        return api_key

    def authenticate_api_key(self, key_id: str, secret: str) -> Optional[ApiKey]:
        api_key = self.get_api_key(key_id)
        if api_key is None or api_key.revoked_at is not None:
            return None
        if not verify_secret(secret, api_key.secret_hash):
            logger.warning(f"Invalid secret presented for API key {key_id}")
            return None
        api_key.last_used_at = datetime.utcnow()
        self.db.flush()
        return api_key

    def issue_api_key_token(self, api_key: ApiKey) -> Tuple[str, int]:
        expires_in = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        token = create_access_token(
            {
                "sub": f"apikey:{api_key.key_id}",
                "kid": api_key.key_id,
                "tenant_id": api_key.tenant_id,
                "role": api_key.role,
            },
            expires_delta=timedelta(seconds=expires_in),
        )
        return token, expires_in
