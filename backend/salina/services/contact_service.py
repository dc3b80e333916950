"""
Contact Service - sensitive field access and contact export
"""
from typing import List, Optional
import logging

from sqlalchemy.orm import selectinload

from salina.core.encryption import masked_tax_id_or_placeholder
from salina.core.tenancy import TenantScope
from salina.models import Contact
from salina.schemas import MaskedTaxId

logger = logging.getLogger(__name__)

# tin_encrypted never leaves the service; exports only carry type and last four
EXPORT_FIELDS = (
    "id", "first_name", "last_name", "email", "phone", "roles",
    "payment_method", "tin_type", "tin_last_four", "status",
)


class ContactService:
    def __init__(self, scope: TenantScope):
        self.scope = scope

    def get_by_id(self, contact_id: int) -> Optional[Contact]:
        return self.scope.get(Contact, contact_id)

    def get_masked_tax_id(self, contact_id: int) -> Optional[MaskedTaxId]:
        contact = self.get_by_id(contact_id)
        if contact is None:
            return None
        return MaskedTaxId(
            contact_id=contact.id,
            tin_type=contact.tin_type,
            masked_tax_id=masked_tax_id_or_placeholder(contact.tin_encrypted, contact.tin_type),
        )

    def get_export_rows(self, role: Optional[str] = None) -> List[dict]:
        query = self.scope.query(Contact).options(selectinload(Contact.roles))
        contacts = query.order_by(Contact.last_name, Contact.first_name, Contact.id).all()

        rows = []
        for contact in contacts:
            roles = sorted(r.role for r in contact.roles)
            if role and role not in roles:
                continue
            rows.append({
                "id": contact.id,
                "first_name": contact.first_name,
                "last_name": contact.last_name,
                "email": contact.email,
                "phone": contact.phone,
                "roles": ", ".join(roles),
                "payment_method": contact.payment_method,
                "tin_type": contact.tin_type,
                "tin_last_four": contact.tin_last_four,
                "status": contact.status,
            })
        logger.info(f"Prepared {len(rows)} contacts for export in tenant {self.scope.tenant_id}")
        return rows
