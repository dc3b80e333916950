"""
Tenant-scoped query handle.

Report services never receive a bare ``Session``. They receive a
``TenantScope``, which can only be obtained once a tenant id has been
resolved, and every query built through it starts with the tenant predicate.
"""
import logging

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_SCOPE_TOKEN = object()


class TenantScope:
    """Session wrapper bound to exactly one tenant."""

    __slots__ = ("_db", "_tenant_id")

    def __init__(self, db: Session, tenant_id: int, _token=None):
        if _token is not _SCOPE_TOKEN:
            raise TypeError(
                "TenantScope cannot be constructed directly; "
                "use TenantScope.resolve() or TenantScope.for_tenant()"
            )
        self._db = db
        self._tenant_id = tenant_id

    @classmethod
    def for_tenant(cls, db: Session, tenant_id) -> "TenantScope":
        if tenant_id is None or isinstance(tenant_id, bool):
            raise ValueError("A resolved tenant id is required")
        try:
            tenant_id = int(tenant_id)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid tenant id: {tenant_id!r}")
        return cls(db, tenant_id, _token=_SCOPE_TOKEN)

    @classmethod
    def resolve(cls, db: Session, principal) -> "TenantScope":
        """Build a scope from an authenticated principal"""
        return cls.for_tenant(db, getattr(principal, "tenant_id", None))

    @property
    def tenant_id(self) -> int:
        return self._tenant_id

    @property
    def session(self) -> Session:
        """Raw session, for writes (add/flush/commit) only."""
        return self._db

    def query(self, model, *columns):
        """
        Query ``model`` (or ``columns`` selected from it) restricted to this tenant.

        Args:
            model: Mapped class carrying a ``tenant_id`` column.
            columns: Optional column expressions to select instead of the entity.
        """
        if columns:
            query = self._db.query(*columns).select_from(model)
        else:
            query = self._db.query(model)
        return query.filter(model.tenant_id == self._tenant_id)

    def get(self, model, pk):
        return self.query(model).filter(model.id == pk).first()

    def add(self, instance):
        """Attach ``instance`` to the session, stamping this tenant on it."""
        if getattr(instance, "tenant_id", None) not in (None, self._tenant_id):
            raise ValueError("Instance belongs to a different tenant")
        instance.tenant_id = self._tenant_id
        self._db.add(instance)
        return instance

    def __repr__(self):
        return f"<TenantScope tenant_id={self._tenant_id}>"
