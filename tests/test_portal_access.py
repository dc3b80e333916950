import pytest
import requests

from salina.api.v1.contacts import get_portal_access_service
from salina.core.exceptions import InvitationProviderError
from salina.core.tenancy import TenantScope
from salina.main import app
from salina.models import AuditLog, User
from salina.services.invitation_client import Invitation, InvitationClient
from salina.services.portal_access_service import (
    ALREADY_HAS_ACCESS, AUTHOR_NOT_FOUND, EMAIL_REQUIRED, INVITATION_FAILED,
    NOT_AN_AUTHOR, PortalAccessService
)


class FakeInvitationClient:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send_invitation(self, email, metadata):
        self.sent.append((email, metadata))
        if self.fail:
            raise InvitationProviderError("provider unavailable", status_code=503)
        return Invitation(id="inv_123", email=email, status="pending")


class FakeResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._body = body or {}
        self.content = b"{}" if body is not None else b""

    def json(self):
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def author(make, tenant):
    return make.contact(tenant, first_name="Ada", last_name="Lovelace", email="ada@example.com")


def test_grant_access_creates_pending_author_user(db, scope, author):
    client = FakeInvitationClient()

    result = PortalAccessService(scope, client).grant_access(author.id, actor_user_id=None)

    assert result.success
    assert result.data.email == "ada@example.com"
    assert result.data.is_active is False
    assert result.data.invitation_id == "inv_123"
    user = db.get(User, author.portal_user_id)
    assert user.role == "author"
    assert user.tenant_id == scope.tenant_id

    email, metadata = client.sent[0]
    assert email == "ada@example.com"
    assert metadata == {"author_id": author.id, "contact_id": author.id,
                        "tenant_id": scope.tenant_id, "role": "author"}

    entry = db.query(AuditLog).one()
    assert entry.action_type == "CREATE"
    assert entry.resource_type == "portal_user"


def test_provider_failure_releases_reservation(db, scope, author):
    result = PortalAccessService(scope, FakeInvitationClient(fail=True)).grant_access(author.id)

    assert not result.success
    assert result.error == INVITATION_FAILED
    assert result.status_code == 502
    assert author.portal_user_id is None
    assert db.query(User).filter(User.role == "author").count() == 0
    assert db.query(AuditLog).count() == 0


def test_grant_rejects_unknown_contact(scope):
    result = PortalAccessService(scope, FakeInvitationClient()).grant_access(999)

    assert result.error == AUTHOR_NOT_FOUND
    assert result.status_code == 404


def test_grant_rejects_contact_from_another_tenant(make, scope, other_tenant):
    stranger = make.contact(other_tenant)

    result = PortalAccessService(scope, FakeInvitationClient()).grant_access(stranger.id)

    assert result.error == AUTHOR_NOT_FOUND


def test_grant_rejects_non_author(make, scope, tenant):
    customer = make.contact(tenant, roles=("customer",))

    result = PortalAccessService(scope, FakeInvitationClient()).grant_access(customer.id)

    assert result.error == NOT_AN_AUTHOR


def test_grant_requires_email(make, scope, tenant):
    author = make.contact(tenant, email=None)
    client = FakeInvitationClient()

    result = PortalAccessService(scope, client).grant_access(author.id)

    assert result.error == EMAIL_REQUIRED
    assert client.sent == []


def test_grant_twice_is_rejected(scope, author):
    service = PortalAccessService(scope, FakeInvitationClient())
    service.grant_access(author.id)

    result = service.grant_access(author.id)

    assert result.error == ALREADY_HAS_ACCESS
    assert result.status_code == 409


def test_revoke_deactivates_portal_user(db, scope, author):
    service = PortalAccessService(scope, FakeInvitationClient())
    granted = service.grant_access(author.id)
    db.get(User, granted.data.user_id).is_active = True
    db.flush()

    result = service.revoke_access(author.id)

    assert result.success
    assert result.data.is_active is False
    actions = [entry.action_type for entry in db.query(AuditLog).order_by(AuditLog.id)]
    assert actions == ["CREATE", "UPDATE"]


def test_revoke_without_access_fails(scope, author):
    result = PortalAccessService(scope, FakeInvitationClient()).revoke_access(author.id)

    assert not result.success


def test_invitation_client_posts_to_provider():
    session = FakeSession(FakeResponse(200, {"id": "inv_9", "status": "pending"}))
    client = InvitationClient(base_url="https://idp.test/v1/", api_key="sk_live", session=session)

    invitation = client.send_invitation("ada@example.com", {"role": "author"})

    assert invitation.id == "inv_9"
    url, kwargs = session.calls[0]
    assert url == "https://idp.test/v1/invitations"
    assert kwargs["json"]["email_address"] == "ada@example.com"
    assert kwargs["headers"]["Authorization"] == "Bearer sk_live"


def test_invitation_client_raises_on_error_status():
    client = InvitationClient(api_key="sk_live", session=FakeSession(FakeResponse(422)))

    with pytest.raises(InvitationProviderError) as exc:
        client.send_invitation("ada@example.com", {})
    assert exc.value.status_code == 422


def test_invitation_client_raises_on_transport_error():
    session = FakeSession(error=requests.exceptions.ConnectionError("refused"))
    client = InvitationClient(api_key="sk_live", session=session)

    with pytest.raises(InvitationProviderError):
        client.send_invitation("ada@example.com", {})


def test_grant_via_api(client, auth_headers, db, author):
    fake = FakeInvitationClient()
    app.dependency_overrides[get_portal_access_service] = lambda: PortalAccessService(
        _scope_for(db, author), fake
    )
    db.commit()

    response = client.post(f"/api/v1/contacts/{author.id}/portal-access", headers=auth_headers("admin"))

    assert response.status_code == 200
    assert response.json()["data"]["email"] == "ada@example.com"
    assert len(fake.sent) == 1


def test_grant_via_api_reports_provider_failure(client, auth_headers, db, author):
    app.dependency_overrides[get_portal_access_service] = lambda: PortalAccessService(
        _scope_for(db, author), FakeInvitationClient(fail=True)
    )
    db.commit()

    response = client.post(f"/api/v1/contacts/{author.id}/portal-access", headers=auth_headers("owner"))

    assert response.status_code == 502
    assert response.json() == {"success": False, "error": INVITATION_FAILED}


def _scope_for(db, contact):
    return TenantScope.for_tenant(db, contact.tenant_id)
