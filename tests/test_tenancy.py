import pytest

from salina.core.security import Principal
from salina.core.tenancy import TenantScope
from salina.models import Contact, Title


def test_scope_cannot_be_built_directly(db):
    with pytest.raises(TypeError):
        TenantScope(db, 1)


@pytest.mark.parametrize("tenant_id", [None, True, "abc"])
def test_scope_requires_a_resolved_tenant(db, tenant_id):
    with pytest.raises(ValueError):
        TenantScope.for_tenant(db, tenant_id)


def test_resolve_uses_principal_tenant(db):
    scope = TenantScope.resolve(db, Principal(tenant_id=7, role="finance"))

    assert scope.tenant_id == 7


def test_resolve_without_principal_fails(db):
    with pytest.raises(ValueError):
        TenantScope.resolve(db, None)


def test_queries_only_see_own_tenant(make, scope, tenant, other_tenant):
    make.title(tenant, "Mine")
    theirs = make.title(other_tenant, "Theirs")

    assert [t.title for t in scope.query(Title).all()] == ["Mine"]
    assert [row.title for row in scope.query(Title, Title.title).all()] == ["Mine"]
    assert scope.get(Title, theirs.id) is None


def test_add_stamps_tenant(db, scope, tenant):
    title = scope.add(Title(title="Stamped"))
    db.flush()

    assert title.tenant_id == tenant.id


def test_add_rejects_foreign_rows(scope, other_tenant):
    with pytest.raises(ValueError):
        scope.add(Contact(tenant_id=other_tenant.id, first_name="Rival"))
