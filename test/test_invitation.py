"""
Test suite for the invitation workflow.
"""
import pytest
from datetime import timedelta
from httpx import AsyncClient
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import CapacityExceededError, ConflictError, NotFoundError, PermissionDeniedError
from app.models import ActivityLog, Invitation, User, utcnow
from app.roles import UserRole
from app.schemas import Identity, InvitationCreate
from app.services.invitation_service import InvitationService
from app.services.user_service import UserService


def invite(email: str, role: UserRole = UserRole.INSPECTOR) -> InvitationCreate:
    return InvitationCreate(email=email, role=role)


class TestCreateInvitation:
    """Test create_invitation."""

    @pytest.mark.asyncio
    async def test_create_and_read_details(self, db_session: AsyncSession, hierarchy, org_admin):
        service = InvitationService(db_session)

        created = await service.create_invitation(org_admin, hierarchy["child_a"].id, invite("new@example.com"))

        assert created.invitation_url.endswith(f"/accept-invitation/{created.invitation_token}")
        assert created.expires_at > utcnow() + timedelta(days=6)

        details = await service.get_invitation_details(created.invitation_token)
        assert details.email == "new@example.com"
        assert details.role == "inspector"
        assert details.organization_id == hierarchy["child_a"].id
        assert details.organization_name == "Child A"
        assert details.inviter_name == org_admin.name

        entry = (await db_session.execute(
            select(ActivityLog).where(ActivityLog.action_type == "user_invited")
        )).scalar_one()
        assert entry.user_id == org_admin.id
        assert entry.target_id == str(created.id)

    @pytest.mark.asyncio
    async def test_tokens_are_unique(self, db_session: AsyncSession, hierarchy, org_admin):
        service = InvitationService(db_session)

        first = await service.create_invitation(org_admin, hierarchy["master"].id, invite("one@example.com"))
        second = await service.create_invitation(org_admin, hierarchy["master"].id, invite("two@example.com"))

        assert first.invitation_token != second.invitation_token
        assert len(first.invitation_token) >= 32

    @pytest.mark.asyncio
    async def test_existing_user_conflicts(self, db_session: AsyncSession, hierarchy, org_admin, inspector):
        service = InvitationService(db_session)

        with pytest.raises(ConflictError):
            await service.create_invitation(org_admin, hierarchy["master"].id, invite(inspector.email))

    @pytest.mark.asyncio
    async def test_duplicate_pending_invitation_conflicts(self, db_session: AsyncSession, hierarchy, org_admin):
        service = InvitationService(db_session)
        await service.create_invitation(org_admin, hierarchy["master"].id, invite("dup@example.com"))

        with pytest.raises(ConflictError):
            await service.create_invitation(org_admin, hierarchy["master"].id, invite("dup@example.com", UserRole.CLIENT))

    @pytest.mark.asyncio
    async def test_reinvite_after_revocation(self, db_session: AsyncSession, hierarchy, org_admin):
        service = InvitationService(db_session)
        created = await service.create_invitation(org_admin, hierarchy["master"].id, invite("again@example.com"))
        await service.revoke_invitation(org_admin, created.id)

        again = await service.create_invitation(org_admin, hierarchy["master"].id, invite("again@example.com"))

        assert again.id != created.id

    @pytest.mark.asyncio
    async def test_user_capacity(self, db_session: AsyncSession, system_admin, make_organization, make_user):
        tiny = await make_organization("Tiny", max_users=1)
        await make_user(UserRole.INSPECTOR, organization=tiny)
        service = InvitationService(db_session)

        with pytest.raises(CapacityExceededError) as exc_info:
            await service.create_invitation(system_admin, tiny.id, invite("late@example.com"))

        assert exc_info.value.details == {"max_users": 1, "active_users": 1}

    @pytest.mark.asyncio
    async def test_inactive_users_do_not_count(self, db_session: AsyncSession, system_admin, make_organization, make_user):
        tiny = await make_organization("Tiny", max_users=1)
        await make_user(UserRole.INSPECTOR, organization=tiny, is_active=False)
        service = InvitationService(db_session)

        created = await service.create_invitation(system_admin, tiny.id, invite("seat@example.com"))

        assert created.id is not None

    @pytest.mark.parametrize("key", ["grandchild", "other", "other_child"])
    @pytest.mark.asyncio
    async def test_org_admin_outside_subtree(self, db_session: AsyncSession, hierarchy, org_admin, key):
        service = InvitationService(db_session)

        with pytest.raises(PermissionDeniedError):
            await service.create_invitation(org_admin, hierarchy[key].id, invite("x@example.com"))

    @pytest.mark.parametrize("role", [UserRole.ORG_ADMIN, UserRole.SYSTEM_ADMIN])
    @pytest.mark.asyncio
    async def test_org_admin_cannot_invite_admins(self, db_session: AsyncSession, hierarchy, org_admin, role):
        service = InvitationService(db_session)

        with pytest.raises(PermissionDeniedError):
            await service.create_invitation(org_admin, hierarchy["master"].id, invite("boss@example.com", role))

        invitations = (await db_session.execute(select(Invitation))).scalars().all()
        assert invitations == []

    @pytest.mark.asyncio
    async def test_system_admin_invites_org_admin_anywhere(self, db_session: AsyncSession, hierarchy, system_admin):
        service = InvitationService(db_session)

        created = await service.create_invitation(
            system_admin, hierarchy["grandchild"].id, invite("lead@example.com", UserRole.ORG_ADMIN)
        )

        details = await service.get_invitation_details(created.invitation_token)
        assert details.role == "org_admin"

    @pytest.mark.asyncio
    async def test_field_roles_cannot_invite(self, db_session: AsyncSession, hierarchy, inspector):
        service = InvitationService(db_session)

        with pytest.raises(PermissionDeniedError):
            await service.create_invitation(inspector, hierarchy["master"].id, invite("friend@example.com"))

    @pytest.mark.asyncio
    async def test_missing_or_inactive_organization(self, db_session: AsyncSession, hierarchy, system_admin):
        hierarchy["other_child"].is_active = False
        await db_session.commit()
        service = InvitationService(db_session)

        with pytest.raises(NotFoundError):
            await service.create_invitation(system_admin, 99999, invite("a@example.com"))
        with pytest.raises(NotFoundError):
            await service.create_invitation(system_admin, hierarchy["other_child"].id, invite("a@example.com"))


class TestAcceptInvitation:
    """Test accept_invitation."""

    @pytest.mark.asyncio
    async def test_accept_provisions_new_identity(self, db_session: AsyncSession, hierarchy, org_admin):
        service = InvitationService(db_session)
        created = await service.create_invitation(org_admin, hierarchy["child_b"].id, invite("joiner@example.com", UserRole.MANAGER))

        accepted = await service.accept_invitation(Identity(id="ext-joiner", email="joiner@example.com"), created.invitation_token)

        assert accepted.role == "manager"
        assert accepted.organization_id == hierarchy["child_b"].id

        user = await db_session.get(User, "ext-joiner")
        assert user.organization_id == hierarchy["child_b"].id
        assert user.role == "manager"

        invitation = await db_session.get(Invitation, created.id)
        await db_session.refresh(invitation)
        assert invitation.status == "accepted"
        assert invitation.accepted_by == "ext-joiner"

    @pytest.mark.asyncio
    async def test_accept_moves_existing_user(self, db_session: AsyncSession, hierarchy, system_admin, make_user):
        existing = await make_user(UserRole.INSPECTOR, email="drifter@example.com")
        invitation = Invitation(
            email="drifter@example.com",
            organization_id=hierarchy["other"].id,
            role=UserRole.ORG_ADMIN.value,
            invitation_token="drifter-token",
            expires_at=utcnow() + timedelta(days=1)
        )
        db_session.add(invitation)
        await db_session.commit()
        service = InvitationService(db_session)

        await service.accept_invitation(Identity(id=existing.id, email=existing.email), "drifter-token")

        await db_session.refresh(existing)
        assert existing.role == "org_admin"
        assert existing.organization_id == hierarchy["other"].id
        assert existing.managed_organization_id == hierarchy["other"].id
        assert existing.can_manage_users is True

    @pytest.mark.asyncio
    async def test_double_accept(self, db_session: AsyncSession, hierarchy, org_admin):
        service = InvitationService(db_session)
        created = await service.create_invitation(org_admin, hierarchy["master"].id, invite("once@example.com"))
        identity = Identity(id="ext-once", email="once@example.com")
        await service.accept_invitation(identity, created.invitation_token)

        with pytest.raises(NotFoundError):
            await service.accept_invitation(identity, created.invitation_token)

    @pytest.mark.asyncio
    async def test_email_mismatch(self, db_session: AsyncSession, hierarchy, org_admin):
        service = InvitationService(db_session)
        created = await service.create_invitation(org_admin, hierarchy["master"].id, invite("right@example.com"))

        with pytest.raises(PermissionDeniedError):
            await service.accept_invitation(Identity(id="ext-wrong", email="wrong@example.com"), created.invitation_token)

        details = await service.get_invitation_details(created.invitation_token)
        assert details.email == "right@example.com"
        assert await db_session.get(User, "ext-wrong") is None

    @pytest.mark.asyncio
    async def test_inactive_user_cannot_accept(self, db_session: AsyncSession, hierarchy, make_user):
        user = await make_user(UserRole.INSPECTOR, email="gone@example.com", is_active=False)
        db_session.add(Invitation(
            email="gone@example.com",
            organization_id=hierarchy["master"].id,
            role=UserRole.INSPECTOR.value,
            invitation_token="gone-token",
            expires_at=utcnow() + timedelta(days=1)
        ))
        await db_session.commit()
        service = InvitationService(db_session)

        with pytest.raises(PermissionDeniedError):
            await service.accept_invitation(Identity(id=user.id, email=user.email), "gone-token")

    @pytest.mark.asyncio
    async def test_expired_invitation(self, db_session: AsyncSession, hierarchy):
        db_session.add(Invitation(
            email="late@example.com",
            organization_id=hierarchy["master"].id,
            role=UserRole.INSPECTOR.value,
            invitation_token="expired-token",
            expires_at=utcnow() - timedelta(seconds=1)
        ))
        await db_session.commit()
        service = InvitationService(db_session)

        with pytest.raises(NotFoundError):
            await service.get_invitation_details("expired-token")
        with pytest.raises(NotFoundError):
            await service.accept_invitation(Identity(id="ext-late", email="late@example.com"), "expired-token")

    @pytest.mark.asyncio
    async def test_accept_when_profile_was_inserted_concurrently(self, db_session: AsyncSession, hierarchy, org_admin, make_user, stale_user_lookup):
        """The accept re-reads a profile another request inserted and still claims the invitation."""
        child_id = hierarchy["child_a"].id
        service = InvitationService(db_session)
        created = await service.create_invitation(org_admin, child_id, invite("racer@example.com", UserRole.MANAGER))
        racer = await make_user(UserRole.INSPECTOR, id="ext-racer", email="racer@example.com")
        db_session.expunge(racer)

        accepted = await service.accept_invitation(Identity(id="ext-racer", email="racer@example.com"), created.invitation_token)

        assert len(stale_user_lookup) == 2
        assert accepted.role == "manager"
        assert accepted.organization_id == child_id

        user = await db_session.get(User, "ext-racer")
        await db_session.refresh(user)
        assert user.role == "manager"
        assert user.organization_id == child_id

        invitation = await db_session.get(Invitation, created.id)
        await db_session.refresh(invitation)
        assert invitation.status == "accepted"
        assert invitation.accepted_by == "ext-racer"

    @pytest.mark.asyncio
    async def test_accept_loses_concurrent_claim(self, db_session: AsyncSession, hierarchy, org_admin, make_user, monkeypatch):
        master_id = hierarchy["master"].id
        service = InvitationService(db_session)
        created = await service.create_invitation(org_admin, hierarchy["child_a"].id, invite("slow@example.com"))
        user = await make_user(UserRole.CLIENT, organization=hierarchy["master"], email="slow@example.com")
        identity = Identity(id=user.id, email=user.email)
        rival_id = (await make_user(UserRole.INSPECTOR)).id
        original = UserService.claim_invitation

        async def claim_after_rival(self, invitation_id, user_id):
            await self.db.execute(
                update(Invitation)
                .where(Invitation.id == invitation_id)
                .values(status="accepted", accepted_by=rival_id, accepted_at=utcnow())
            )
            await self.db.commit()
            return await original(self, invitation_id, user_id)

        monkeypatch.setattr(UserService, "claim_invitation", claim_after_rival)

        with pytest.raises(ConflictError):
            await service.accept_invitation(identity, created.invitation_token)

        await db_session.refresh(user)
        assert user.organization_id == master_id
        assert user.role == "client"

        invitation = await db_session.get(Invitation, created.id)
        await db_session.refresh(invitation)
        assert invitation.accepted_by == rival_id

        accepted_entries = (await db_session.execute(
            select(ActivityLog).where(ActivityLog.action_type == "invitation_accepted")
        )).scalars().all()
        assert accepted_entries == []

    @pytest.mark.asyncio
    async def test_unknown_token(self, db_session: AsyncSession):
        service = InvitationService(db_session)

        with pytest.raises(NotFoundError):
            await service.get_invitation_details("no-such-token")


class TestRevokeInvitation:
    """Test revoke_invitation."""

    @pytest.mark.asyncio
    async def test_revoke(self, db_session: AsyncSession, hierarchy, org_admin):
        service = InvitationService(db_session)
        created = await service.create_invitation(org_admin, hierarchy["master"].id, invite("bye@example.com"))

        invitation = await service.revoke_invitation(org_admin, created.id)

        assert invitation.status == "revoked"
        assert invitation.revoked_at is not None
        with pytest.raises(NotFoundError):
            await service.get_invitation_details(created.invitation_token)

    @pytest.mark.asyncio
    async def test_revoke_twice_conflicts(self, db_session: AsyncSession, hierarchy, org_admin):
        service = InvitationService(db_session)
        created = await service.create_invitation(org_admin, hierarchy["master"].id, invite("twice@example.com"))
        await service.revoke_invitation(org_admin, created.id)

        with pytest.raises(ConflictError):
            await service.revoke_invitation(org_admin, created.id)

    @pytest.mark.asyncio
    async def test_revoke_accepted_conflicts(self, db_session: AsyncSession, hierarchy, org_admin):
        service = InvitationService(db_session)
        created = await service.create_invitation(org_admin, hierarchy["master"].id, invite("taken@example.com"))
        await service.accept_invitation(Identity(id="ext-taken", email="taken@example.com"), created.invitation_token)

        with pytest.raises(ConflictError):
            await service.revoke_invitation(org_admin, created.id)

    @pytest.mark.asyncio
    async def test_revoke_outside_scope(self, db_session: AsyncSession, hierarchy, system_admin, org_admin):
        service = InvitationService(db_session)
        created = await service.create_invitation(system_admin, hierarchy["other"].id, invite("theirs@example.com"))

        with pytest.raises(PermissionDeniedError):
            await service.revoke_invitation(org_admin, created.id)

    @pytest.mark.asyncio
    async def test_revoke_loses_to_concurrent_accept(self, db_session: AsyncSession, hierarchy, org_admin, monkeypatch):
        service = InvitationService(db_session)
        created = await service.create_invitation(org_admin, hierarchy["master"].id, invite("quick@example.com"))
        original = InvitationService._managed_organization

        async def accepted_meanwhile(self, actor, organization_id):
            organization = await original(self, actor, organization_id)
            await self.db.execute(
                update(Invitation).where(Invitation.id == created.id).values(status="accepted", accepted_at=utcnow())
            )
            await self.db.commit()
            return organization

        monkeypatch.setattr(InvitationService, "_managed_organization", accepted_meanwhile)

        with pytest.raises(ConflictError):
            await service.revoke_invitation(org_admin, created.id)

        invitation = await db_session.get(Invitation, created.id)
        await db_session.refresh(invitation)
        assert invitation.status == "accepted"
        assert invitation.revoked_at is None

        revoked_entries = (await db_session.execute(
            select(ActivityLog).where(ActivityLog.action_type == "invitation_revoked")
        )).scalars().all()
        assert revoked_entries == []

    @pytest.mark.asyncio
    async def test_revoke_missing(self, db_session: AsyncSession, system_admin):
        service = InvitationService(db_session)

        with pytest.raises(NotFoundError):
            await service.revoke_invitation(system_admin, 424242)


class TestListInvitations:
    """Test list_pending_invitations."""

    @pytest.mark.asyncio
    async def test_pending_in_managed_scope_newest_first(self, db_session: AsyncSession, hierarchy, system_admin, org_admin):
        service = InvitationService(db_session)
        first = await service.create_invitation(org_admin, hierarchy["master"].id, invite("first@example.com"))
        second = await service.create_invitation(org_admin, hierarchy["child_a"].id, invite("second@example.com"))
        await service.create_invitation(system_admin, hierarchy["other"].id, invite("third@example.com"))
        revoked = await service.create_invitation(org_admin, hierarchy["master"].id, invite("fourth@example.com"))
        await service.revoke_invitation(org_admin, revoked.id)

        invitations = await service.list_pending_invitations(org_admin)

        assert [invitation.id for invitation in invitations] == [second.id, first.id]
        assert invitations[0].organization_name == "Child A"
        assert invitations[0].inviter_name == org_admin.name

        only_master = await service.list_pending_invitations(org_admin, organization_id=hierarchy["master"].id)
        assert [invitation.id for invitation in only_master] == [first.id]

        everything = await service.list_pending_invitations(system_admin)
        assert len(everything) == 3

    @pytest.mark.asyncio
    async def test_field_roles_cannot_list(self, db_session: AsyncSession, inspector):
        service = InvitationService(db_session)

        with pytest.raises(PermissionDeniedError):
            await service.list_pending_invitations(inspector)


class TestInvitationEndpoints:
    """Test invitation API endpoints."""

    @pytest.mark.asyncio
    async def test_invite_accept_flow(self, client: AsyncClient, hierarchy, org_admin, auth_headers):
        response = await client.post(
            f"/api/v1/organizations/{hierarchy['child_a'].id}/invitations",
            json={"email": "flow@example.com", "role": "client"},
            headers=auth_headers(org_admin)
        )
        assert response.status_code == 201
        token = response.json()["invitation_token"]

        response = await client.get(f"/api/v1/invitations/{token}/details")
        assert response.status_code == 200
        assert response.json()["organization_name"] == "Child A"

        identity = Identity(id="ext-flow", email="flow@example.com", name="Flow")
        response = await client.post(f"/api/v1/invitations/{token}/accept", headers=auth_headers(identity))
        assert response.status_code == 200
        assert response.json()["role"] == "client"

        response = await client.get("/api/v1/users/me", headers=auth_headers(identity))
        assert response.json()["organization"]["name"] == "Child A"

        response = await client.post(f"/api/v1/invitations/{token}/accept", headers=auth_headers(identity))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invite_escalation_endpoint(self, client: AsyncClient, hierarchy, org_admin, auth_headers):
        response = await client.post(
            f"/api/v1/organizations/{hierarchy['master'].id}/invitations",
            json={"email": "lead@example.com", "role": "org_admin"},
            headers=auth_headers(org_admin)
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_invalid_email_rejected(self, client: AsyncClient, hierarchy, org_admin, auth_headers):
        response = await client.post(
            f"/api/v1/organizations/{hierarchy['master'].id}/invitations",
            json={"email": "not-an-email", "role": "inspector"},
            headers=auth_headers(org_admin)
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_accept_email_mismatch_endpoint(self, client: AsyncClient, hierarchy, org_admin, auth_headers):
        response = await client.post(
            f"/api/v1/organizations/{hierarchy['master'].id}/invitations",
            json={"email": "mine@example.com", "role": "inspector"},
            headers=auth_headers(org_admin)
        )
        token = response.json()["invitation_token"]

        response = await client.post(
            f"/api/v1/invitations/{token}/accept",
            headers=auth_headers(Identity(id="ext-thief", email="thief@example.com"))
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_accept_requires_authentication(self, client: AsyncClient):
        response = await client.post("/api/v1/invitations/some-token/accept")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_list_and_revoke_endpoints(self, client: AsyncClient, hierarchy, org_admin, inspector, auth_headers):
        response = await client.post(
            f"/api/v1/organizations/{hierarchy['master'].id}/invitations",
            json={"email": "revoke.me@example.com", "role": "inspector"},
            headers=auth_headers(org_admin)
        )
        invitation_id = response.json()["id"]

        response = await client.get("/api/v1/invitations", headers=auth_headers(org_admin))
        assert [invitation["id"] for invitation in response.json()] == [invitation_id]

        response = await client.get("/api/v1/invitations", headers=auth_headers(inspector))
        assert response.status_code == 403

        response = await client.put(f"/api/v1/invitations/{invitation_id}/revoke", headers=auth_headers(org_admin))
        assert response.status_code == 200

        response = await client.put(f"/api/v1/invitations/{invitation_id}/revoke", headers=auth_headers(org_admin))
        assert response.status_code == 409
