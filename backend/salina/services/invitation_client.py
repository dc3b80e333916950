"""
Identity provider client for author portal invitations
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

import requests

from salina.core.config import settings
from salina.core.exceptions import InvitationProviderError

logger = logging.getLogger(__name__)


@dataclass
class Invitation:
    id: Optional[str]
    email: str
    status: Optional[str] = None


class InvitationClient:
    """Thin wrapper over the provider's invitation endpoint"""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout: Optional[int] = None, session: Optional[requests.Session] = None):
        self.base_url = (base_url or settings.INVITATION_PROVIDER_URL).rstrip("/")
        self.api_key = api_key or settings.INVITATION_PROVIDER_API_KEY
        self.timeout = timeout or settings.INVITATION_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def send_invitation(self, email: str, metadata: Dict[str, Any]) -> Invitation:
        """
        Ask the provider to email a sign-up invitation.

        Args:
            email: Recipient address.
            metadata: Opaque payload the provider attaches to the created account.

        Raises:
            InvitationProviderError: on transport failure or a non-2xx response.
        """
        if not self.api_key:
            raise InvitationProviderError("Invitation provider is not configured")

        payload = {"email_address": email, "public_metadata": metadata}
        if settings.INVITATION_REDIRECT_URL:
            payload["redirect_url"] = settings.INVITATION_REDIRECT_URL

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self.session.post(
                f"{self.base_url}/invitations",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Invitation request for {email} failed: {e}")
            raise InvitationProviderError(f"Invitation request failed: {e}")

        if not response.ok:
            logger.error(f"Invitation provider returned {response.status_code} for {email}")
            raise InvitationProviderError(
                f"Invitation provider returned {response.status_code}",
                status_code=response.status_code,
            )

        body = response.json() if response.content else {}
        logger.info(f"Portal invitation sent to {email}")
        return Invitation(id=body.get("id"), email=email, status=body.get("status"))
