"""
Tenant Service
"""
from typing import Optional
from sqlalchemy.orm import Session

from salina.models import Tenant


class TenantService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, tenant_id: int) -> Optional[Tenant]:
        return self.db.query(Tenant).filter(Tenant.id == tenant_id).first()

    def display_name(self, tenant_id: int) -> str:
        tenant = self.get_by_id(tenant_id)
        return tenant.name if tenant else "Salina ERP"
