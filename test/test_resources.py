"""
Test suite for the scoped inspection-side read endpoints.
"""
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import ActionItem, ChecklistTemplate, Inspection, InspectionCollaborator
from app.roles import UserRole


@pytest.fixture
async def field_data(db_session: AsyncSession, hierarchy, inspector, org_admin, make_user):
    colleague = await make_user(UserRole.INSPECTOR, organization=hierarchy["master"])

    own = Inspection(title="Own", organization_id=hierarchy["master"].id, created_by=inspector.id)
    shared = Inspection(title="Shared", organization_id=hierarchy["master"].id, created_by=colleague.id)
    private = Inspection(title="Private", organization_id=hierarchy["master"].id, created_by=colleague.id)
    child = Inspection(title="Child", organization_id=hierarchy["child_b"].id, created_by=org_admin.id)
    db_session.add_all([own, shared, private, child])
    await db_session.flush()

    db_session.add_all([
        InspectionCollaborator(inspection_id=shared.id, user_id=inspector.id),
        ActionItem(inspection_id=shared.id, title="Anchor scaffolding"),
        ActionItem(inspection_id=child.id, title="Label chemicals"),
        ChecklistTemplate(name="NR-35 Work at height", is_public=True),
        ChecklistTemplate(name="Master internal", organization_id=hierarchy["master"].id),
        ChecklistTemplate(name="Other internal", organization_id=hierarchy["other"].id),
    ])
    await db_session.commit()
    return {"own": own, "shared": shared, "private": private, "child": child}


class TestResourceEndpoints:
    """Test inspection, action item and template listings."""

    @pytest.mark.asyncio
    async def test_inspector_inspections(self, client: AsyncClient, field_data, inspector, auth_headers):
        response = await client.get("/api/v1/inspections", headers=auth_headers(inspector))

        assert response.status_code == 200
        assert {item["title"] for item in response.json()} == {"Own", "Shared"}

    @pytest.mark.asyncio
    async def test_org_admin_inspections(self, client: AsyncClient, hierarchy, field_data, org_admin, auth_headers):
        response = await client.get("/api/v1/inspections", headers=auth_headers(org_admin))
        assert {item["title"] for item in response.json()} == {"Own", "Shared", "Private", "Child"}

        response = await client.get(
            "/api/v1/inspections",
            params={"organization_id": hierarchy["child_b"].id},
            headers=auth_headers(org_admin)
        )
        assert [item["title"] for item in response.json()] == ["Child"]

    @pytest.mark.asyncio
    async def test_action_items(self, client: AsyncClient, field_data, inspector, org_admin, auth_headers):
        response = await client.get("/api/v1/action-items", headers=auth_headers(inspector))
        assert [item["title"] for item in response.json()] == ["Anchor scaffolding"]

        response = await client.get("/api/v1/action-items", headers=auth_headers(org_admin))
        assert {item["title"] for item in response.json()} == {"Anchor scaffolding", "Label chemicals"}

    @pytest.mark.asyncio
    async def test_checklist_templates(self, client: AsyncClient, field_data, inspector, system_admin, auth_headers):
        response = await client.get("/api/v1/checklist-templates", headers=auth_headers(inspector))
        assert [item["name"] for item in response.json()] == ["Master internal", "NR-35 Work at height"]

        response = await client.get("/api/v1/checklist-templates", headers=auth_headers(system_admin))
        assert len(response.json()) == 3

    @pytest.mark.asyncio
    async def test_unaffiliated_user_sees_nothing(self, client: AsyncClient, field_data, make_user, auth_headers):
        drifter = await make_user(UserRole.CLIENT)

        response = await client.get("/api/v1/inspections", headers=auth_headers(drifter))

        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient):
        response = await client.get("/api/v1/inspections")

        assert response.status_code == 401
