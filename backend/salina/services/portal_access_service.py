"""
Portal Access Service - author portal invitations

Granting access is a two-phase operation: a pending user is reserved
locally, the identity provider is asked to send the invitation, and the
reservation is then confirmed or released depending on the outcome.
"""
from typing import Optional
import logging

from salina.core.exceptions import InvitationProviderError
from salina.core.results import ActionResult
from salina.core.tenancy import TenantScope
from salina.models import Contact, ContactRoleType, User, UserRole
from salina.schemas import PortalAccessResult
from salina.services.audit_service import AuditAction, AuditService
from salina.services.invitation_client import Invitation, InvitationClient

logger = logging.getLogger(__name__)

AUTHOR_NOT_FOUND = "Author not found"
NOT_AN_AUTHOR = "Contact is not an author"
EMAIL_REQUIRED = "Author must have an email address to receive portal access"
ALREADY_HAS_ACCESS = "Author already has portal access"
NO_PORTAL_ACCESS = "Author does not have portal access"
INVITATION_FAILED = "Failed to send portal invitation. Please try again."


class PortalInvitationReservation:
    """A pending portal user linked to a contact, awaiting the provider's answer"""

    RESERVED = "reserved"
    CONFIRMED = "confirmed"
    RELEASED = "released"

    def __init__(self, scope: TenantScope, contact: Contact, user: User):
        self.scope = scope
        self.contact = contact
        self.user = user
        self.state = self.RESERVED

    @property
    def metadata(self) -> dict:
        return {
            "author_id": self.contact.id,
            "contact_id": self.contact.id,
            "tenant_id": self.scope.tenant_id,
            "role": UserRole.AUTHOR.value,
        }

    def _require_reserved(self):
        if self.state != self.RESERVED:
            raise RuntimeError(f"Reservation already {self.state}")

    def confirm(self, invitation: Invitation, actor_user_id: Optional[int] = None) -> User:
        self._require_reserved()
        AuditService(self.scope).log(
            action=AuditAction.CREATE,
            resource_type="portal_user",
            resource_id=self.user.id,
            after={
                "contact_id": self.contact.id,
                "email": self.user.email,
                "role": self.user.role,
                "invitation_id": invitation.id,
            },
            user_id=actor_user_id,
        )
        self.state = self.CONFIRMED
        logger.info(f"Portal access reserved for contact {self.contact.id} confirmed")
        return self.user

    def release(self):
        """Undo the local reservation after the provider refused the invitation"""
        self._require_reserved()
        db = self.scope.session
        self.contact.portal_user_id = None
        db.flush()
        db.delete(self.user)
        db.flush()
        self.state = self.RELEASED
        logger.info(f"Portal access reservation for contact {self.contact.id} released")


class PortalAccessService:
    def __init__(self, scope: TenantScope, client: Optional[InvitationClient] = None):
        self.scope = scope
        self.client = client or InvitationClient()

    def _find_author(self, contact_id: int) -> Optional[Contact]:
        return self.scope.get(Contact, contact_id)

    def reserve(self, contact: Contact) -> PortalInvitationReservation:
        user = User(
            email=contact.email,
            role=UserRole.AUTHOR.value,
            is_active=False,
        )
        self.scope.add(user)
        self.scope.session.flush()
        contact.portal_user_id = user.id
        self.scope.session.flush()
        return PortalInvitationReservation(self.scope, contact, user)

    def grant_access(self, contact_id: int, actor_user_id: Optional[int] = None) -> ActionResult:
        contact = self._find_author(contact_id)
        if contact is None:
            return ActionResult.fail(AUTHOR_NOT_FOUND, status_code=404)
        if not contact.has_role(ContactRoleType.AUTHOR):
            return ActionResult.fail(NOT_AN_AUTHOR)
        if not contact.email:
            return ActionResult.fail(EMAIL_REQUIRED)
        if contact.portal_user_id is not None:
            return ActionResult.fail(ALREADY_HAS_ACCESS, status_code=409)

        reservation = self.reserve(contact)
        try:
            invitation = self.client.send_invitation(contact.email, reservation.metadata)
        except InvitationProviderError as e:
            logger.error(f"Portal invitation for contact {contact.id} failed: {e}")
            reservation.release()
            return ActionResult.fail(INVITATION_FAILED, status_code=502)

        user = reservation.confirm(invitation, actor_user_id)
        return ActionResult.ok(PortalAccessResult(
            contact_id=contact.id,
            user_id=user.id,
            email=user.email,
            is_active=user.is_active,
            invitation_id=invitation.id,
        ))

    def revoke_access(self, contact_id: int, actor_user_id: Optional[int] = None) -> ActionResult:
        contact = self._find_author(contact_id)
        if contact is None:
            return ActionResult.fail(AUTHOR_NOT_FOUND, status_code=404)
        if contact.portal_user_id is None:
            return ActionResult.fail(NO_PORTAL_ACCESS)

        user = self.scope.get(User, contact.portal_user_id)
        if user is None:
            return ActionResult.fail(NO_PORTAL_ACCESS)

        user.is_active = False
        self.scope.session.flush()

        AuditService(self.scope).log(
            action=AuditAction.UPDATE,
            resource_type="portal_user",
            resource_id=user.id,
            before={"is_active": True},
            after={"is_active": False},
            user_id=actor_user_id,
        )
        logger.info(f"Portal access revoked for contact {contact.id}")
        return ActionResult.ok(PortalAccessResult(
            contact_id=contact.id,
            user_id=user.id,
            email=user.email,
            is_active=user.is_active,
        ))
