"""HTTP surface: envelopes, auth, CSRF, and the routing endpoints end to end."""

import pytest
from httpx import AsyncClient

from app.core.deps import COOKIE_NAME
from app.db.enums import AuditEventType


# =============================================================================
# Health, envelopes, auth
# =============================================================================


async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_request_id_is_echoed_or_generated(client: AsyncClient):
    echoed = await client.get("/health", headers={"X-Request-ID": "req-abc"})
    generated = await client.get("/health")

    assert echoed.headers["X-Request-ID"] == "req-abc"
    assert len(generated.headers["X-Request-ID"]) == 36


async def test_unauthenticated_requests_get_error_envelope(client: AsyncClient):
    response = await client.get("/tickets")
    assert response.status_code == 401
    assert response.json() == {"error": "Not authenticated"}


async def test_unknown_route_uses_error_envelope(client: AsyncClient):
    response = await client.get("/does-not-exist")
    assert response.status_code == 404
    assert "error" in response.json()


async def test_validation_errors_use_error_envelope(client: AsyncClient):
    response = await client.post("/auth/signup", json={"organization_name": ""})
    assert response.status_code == 422
    body = response.json()
    assert isinstance(body["error"], list)
    assert all({"loc", "msg"} <= set(item) for item in body["error"])


async def test_signup_starts_owner_session(client: AsyncClient):
    response = await client.post(
        "/auth/signup",
        json={
            "organization_name": "Acme Support",
            "organization_slug": "acme",
            "email": "founder@acme.io",
            "display_name": "Founder",
        },
    )
    assert response.status_code == 201
    assert COOKIE_NAME in response.cookies
    me = response.json()["data"]
    assert me["role"] == "owner"
    assert me["org_slug"] == "acme"
    assert me["manager_id"] is None

    me_response = await client.get("/auth/me", cookies={COOKIE_NAME: response.cookies[COOKIE_NAME]})
    assert me_response.status_code == 200
    assert me_response.json()["data"]["email"] == "founder@acme.io"


async def test_me_reports_manager(hierarchy, client_for):
    agent = await client_for(hierarchy.a1)

    response = await agent.get("/auth/me")

    assert response.json()["data"]["manager_id"] == str(hierarchy.m1.id)


async def test_role_change_revokes_existing_session(hierarchy, client_for):
    owner = await client_for(hierarchy.owner)
    agent = await client_for(hierarchy.a1)

    response = await owner.patch(f"/users/{hierarchy.a1.id}/role", json={"role": "manager"})
    assert response.status_code == 200

    stale = await agent.get("/auth/me")
    assert stale.status_code == 401
    assert stale.json() == {"error": "Session revoked"}


async def test_mutations_require_csrf_header_with_cookie(db, factory, hierarchy, client_for):
    customer = factory.customer(hierarchy.org)
    ticket = factory.ticket(hierarchy.org, customer, assignee=hierarchy.a1)
    owner = await client_for(hierarchy.owner)

    response = await owner.post(
        f"/tickets/{ticket.id}/assign",
        json={"assignee_id": str(hierarchy.a2.id)},
        headers={"X-Requested-With": ""},
    )

    assert response.status_code == 403
    assert "CSRF" in response.json()["error"]


async def test_logout_clears_cookie(hierarchy, client_for):
    owner = await client_for(hierarchy.owner)

    response = await owner.post("/auth/logout")

    assert response.status_code == 200
    assert response.json() == {"data": {"status": "logged_out"}}


# =============================================================================
# Tickets over HTTP
# =============================================================================


@pytest.fixture
def inbox(factory, hierarchy):
    customer = factory.customer(hierarchy.org)
    return {
        "customer": customer,
        "a1": factory.ticket(hierarchy.org, customer, assignee=hierarchy.a1, subject="A1 ticket"),
        "a3": factory.ticket(hierarchy.org, customer, assignee=hierarchy.a3, subject="A3 ticket"),
        "unassigned": factory.ticket(hierarchy.org, customer, subject="Loose ticket"),
    }


async def test_ticket_list_is_hierarchy_scoped(hierarchy, inbox, client_for):
    manager = await client_for(hierarchy.m1)
    owner = await client_for(hierarchy.owner)

    manager_ids = {t["id"] for t in (await manager.get("/tickets")).json()["data"]}
    owner_body = (await owner.get("/tickets")).json()

    assert manager_ids == {str(inbox["a1"].id)}
    assert {t["id"] for t in owner_body["data"]} == {str(t.id) for k, t in inbox.items() if k != "customer"}
    assert owner_body["pagination"]["next_cursor"] is None


async def test_ticket_list_cursor_over_http(hierarchy, inbox, client_for):
    owner = await client_for(hierarchy.owner)

    first = (await owner.get("/tickets", params={"limit": 2})).json()
    second = (await owner.get("/tickets", params={"limit": 2, "cursor": first["pagination"]["next_cursor"]})).json()

    assert len(first["data"]) == 2
    assert len(second["data"]) == 1
    assert second["pagination"]["next_cursor"] is None

    bad = await owner.get("/tickets", params={"cursor": "garbage"})
    assert bad.status_code == 400
    assert bad.json() == {"error": "Invalid cursor"}


async def test_invisible_ticket_is_404(hierarchy, inbox, client_for):
    agent = await client_for(hierarchy.a1)

    response = await agent.get(f"/tickets/{inbox['a3'].id}")

    assert response.status_code == 404
    assert response.json() == {"error": "Ticket not found"}


async def test_assign_and_escalate_over_http(hierarchy, inbox, client_for):
    agent = await client_for(hierarchy.a1)
    manager = await client_for(hierarchy.m1)

    forbidden = await agent.post(
        f"/tickets/{inbox['a1'].id}/assign", json={"assignee_id": str(hierarchy.a2.id)}
    )
    assert forbidden.status_code == 403

    escalated = await agent.post(f"/tickets/{inbox['a1'].id}/escalate")
    assert escalated.status_code == 200
    assert escalated.json()["data"]["assignee_id"] == str(hierarchy.m1.id)

    outside = await manager.post(
        f"/tickets/{inbox['a1'].id}/assign", json={"assignee_id": str(hierarchy.a3.id)}
    )
    assert outside.status_code == 403

    assigned = await manager.post(
        f"/tickets/{inbox['a1'].id}/assign", json={"assignee_id": str(hierarchy.a2.id)}
    )
    assert assigned.status_code == 200
    assert assigned.json()["data"]["assignee_id"] == str(hierarchy.a2.id)


async def test_escalation_without_manager_is_422(factory, hierarchy, inbox, client_for):
    from app.db.enums import Role

    orphan = factory.user(hierarchy.org, Role.AGENT, name="Orphan")
    ticket = factory.ticket(hierarchy.org, inbox["customer"], assignee=orphan)
    client = await client_for(orphan)

    response = await client.post(f"/tickets/{ticket.id}/escalate")

    assert response.status_code == 422
    assert "no manager" in response.json()["error"]


async def test_create_ticket_and_reply_over_http(hierarchy, inbox, client_for):
    agent = await client_for(hierarchy.a1)

    created = await agent.post(
        "/tickets",
        json={"customer_id": str(inbox["customer"].id), "subject": "Phone call follow-up"},
    )
    assert created.status_code == 201
    ticket = created.json()["data"]
    assert ticket["assignee_id"] == str(hierarchy.a1.id)
    assert ticket["ticket_number"] == "TKT-00001"

    reply = await agent.post(f"/tickets/{ticket['id']}/messages", json={"body": "Calling you back now."})
    assert reply.status_code == 201

    thread = (await agent.get(f"/tickets/{ticket['id']}/messages")).json()
    assert [m["body"] for m in thread["data"]] == ["Calling you back now."]

    detail = (await agent.get(f"/tickets/{ticket['id']}")).json()["data"]
    assert detail["status"] == "in_progress"


async def test_patch_ticket_status(hierarchy, inbox, client_for):
    agent = await client_for(hierarchy.a1)

    response = await agent.patch(f"/tickets/{inbox['a1'].id}", json={"status": "resolved"})

    assert response.status_code == 200
    assert response.json()["data"]["resolved_at"] is not None


# =============================================================================
# Directory, audit
# =============================================================================


async def test_users_list_is_subtree(hierarchy, client_for):
    manager = await client_for(hierarchy.m2)

    body = (await manager.get("/users")).json()

    assert {u["id"] for u in body["data"]} == {str(hierarchy.m2.id), str(hierarchy.a3.id)}


async def test_invite_accept_flow_over_http(hierarchy, client, client_for):
    manager = await client_for(hierarchy.m1)

    created = await manager.post("/invites", json={"email": "fresh@test.com", "role": "agent"})
    assert created.status_code == 201
    token = created.json()["data"]["accept_url"].rsplit("/", 1)[-1]

    accepted = await client.post("/invites/accept", json={"token": token, "display_name": "Fresh"})
    assert accepted.status_code == 201
    assert COOKIE_NAME in accepted.cookies

    me = await client.get("/auth/me", cookies={COOKIE_NAME: accepted.cookies[COOKIE_NAME]})
    assert me.json()["data"]["manager_id"] == str(hierarchy.m1.id)


async def test_audit_is_owner_only(hierarchy, inbox, client_for):
    owner = await client_for(hierarchy.owner)
    manager = await client_for(hierarchy.m1)
    agent = await client_for(hierarchy.a1)

    await agent.post(f"/tickets/{inbox['a1'].id}/escalate")

    assert (await manager.get("/audit")).status_code == 403
    response = await owner.get("/audit", params={"event_type": AuditEventType.TICKET_ESCALATED.value})
    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 1
    assert body["data"][0]["target_id"] == str(inbox["a1"].id)

    types = (await owner.get("/audit/event-types")).json()["data"]
    assert AuditEventType.TICKET_ESCALATED.value in types


# =============================================================================
# Customer-originated traffic
# =============================================================================


async def test_inbound_email_requires_secret(hierarchy, client: AsyncClient):
    payload = {
        "organization_slug": hierarchy.org.slug,
        "from_email": "pat@example.com",
        "text": "Hello",
    }

    missing = await client.post("/inbound/email", json=payload)
    wrong = await client.post("/inbound/email", json=payload, headers={"X-Inbound-Secret": "nope"})

    assert missing.status_code == 401
    assert wrong.status_code == 401


async def test_inbound_email_disabled_without_secret(hierarchy, client: AsyncClient, monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings, "INBOUND_EMAIL_SECRET", "")

    response = await client.post(
        "/inbound/email",
        json={"organization_slug": hierarchy.org.slug, "from_email": "pat@example.com", "text": "Hi"},
        headers={"X-Inbound-Secret": "anything"},
    )

    assert response.status_code == 503


async def test_inbound_email_opens_ticket_when_ai_unavailable(hierarchy, client: AsyncClient):
    response = await client.post(
        "/inbound/email",
        json={
            "organization_slug": hierarchy.org.slug,
            "from_email": "pat@example.com",
            "from_name": "Pat",
            "subject": "Invoice question",
            "text": "Why was I billed twice?",
        },
        headers={"X-Inbound-Secret": "test-inbound-secret"},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["resolved"] is False
    assert data["ticket_number"] == "TKT-00001"


async def test_widget_answered_by_ai(hierarchy, client: AsyncClient, monkeypatch):
    import json

    from app.services import ai_triage_service
    from app.services.ai_provider import AIProvider, ChatResponse

    class ConfidentProvider(AIProvider):
        async def chat(self, messages, model=None, temperature=0.2, max_tokens=800, json_mode=False):
            return ChatResponse(
                content=json.dumps({"canResolve": True, "confidence": 0.9, "response": "We open at 9."}),
                prompt_tokens=1,
                completion_tokens=1,
                total_tokens=2,
                model="fake",
            )

    monkeypatch.setattr(ai_triage_service, "get_configured_provider", lambda: ConfidentProvider())

    response = await client.post(
        f"/widget/{hierarchy.org.slug}/messages",
        json={"email": "pat@example.com", "message": "When do you open?"},
    )

    assert response.status_code == 200
    assert response.json()["data"] == {
        "resolved": True,
        "response": "We open at 9.",
        "ticket_id": None,
        "ticket_number": None,
    }


async def test_widget_unknown_org(client: AsyncClient, db):
    response = await client.post(
        "/widget/nope/messages", json={"email": "pat@example.com", "message": "Hi"}
    )
    assert response.status_code == 404


# =============================================================================
# Dev helpers
# =============================================================================


async def test_dev_login_requires_secret(hierarchy, client: AsyncClient):
    denied = await client.post(f"/dev/login/{hierarchy.a1.id}", headers={"X-Dev-Secret": "wrong"})
    assert denied.status_code == 403

    allowed = await client.post(f"/dev/login/{hierarchy.a1.id}", headers={"X-Dev-Secret": "test-dev-secret"})
    assert allowed.status_code == 200
    assert allowed.json()["data"]["role"] == "agent"
    assert COOKIE_NAME in allowed.cookies


async def test_dev_seed_is_idempotent(client: AsyncClient, db):
    headers = {"X-Dev-Secret": "test-dev-secret"}

    first = await client.post("/dev/seed", headers=headers)
    second = await client.post("/dev/seed", headers=headers)

    assert first.json()["data"]["status"] == "seeded"
    assert len(first.json()["data"]["users"]) == 6
    assert second.json()["data"]["status"] == "already_seeded"
