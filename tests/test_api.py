import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import Session

from m3connect.database import engine
from m3connect.models.event import Event
from m3connect.models.lead import MarinaProject, PartnerLead
from m3connect.models.resource import Resource

PASSWORD = "secret123"


def utcnow():
    return datetime.now(timezone.utc)


def sign_in(client, email, password=PASSWORD):
    res = client.post("/auth/signin", json={"email": email, "password": password})
    assert res.status_code == 200, res.text
    return res.json()


def add_rows(*rows):
    with Session(engine) as session:
        for row in rows:
            session.add(row)
        session.commit()
        for row in rows:
            session.refresh(row)


# -------- session state --------


def test_root_reports_guest_state(client, app, backends):
    res = client.get("/")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["auth"]["auth_ready"] is True
    assert body["auth"]["signed_in"] is False
    assert "m3_portal_session" not in res.cookies
    assert len(app.state.registry) == 0
    assert backends.clients == []


def test_anonymous_reads_do_not_open_sessions(client, app, backends):
    for _ in range(50):
        client.cookies.clear()
        assert client.get("/").status_code == 200
        assert client.get("/resources").status_code == 200
        assert client.get("/events").status_code == 200

    assert len(app.state.registry) == 0
    assert backends.clients == []


def test_tampered_cookie_is_a_guest(client, app):
    client.cookies.set("m3_portal_session", "not-a-jwt")
    res = client.get("/auth/me")
    assert res.status_code == 200
    assert res.json()["signed_in"] is False
    assert len(app.state.registry) == 0


def test_tampered_cookie_is_replaced_on_sign_in(client, app, make_member):
    make_member("ops@marina.org")
    client.cookies.set("m3_portal_session", "not-a-jwt")
    sign_in(client, "ops@marina.org")

    assert len(app.state.registry) == 1
    assert client.get("/auth/me").json()["signed_in"] is True


def test_sign_up_marina(client):
    res = client.post(
        "/auth/signup",
        json={
            "email": "harbour@marina.org",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
            "profile": {
                "first_name": "Lea",
                "organization_type": "Marina / Port",
                "organization_name": "Port Vell",
                "role": "admin",
                "status": "verified",
            },
        },
    )
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["signed_in"] is True
    assert body["profile"]["role"] == "marina"
    assert body["profile"]["status"] == "pending"
    assert body["can_submit_project"] is False
    assert body["is_admin"] is False


def test_sign_up_password_confirmation(client):
    res = client.post(
        "/auth/signup",
        json={"email": "a@harbourclub.org", "password": PASSWORD, "confirm_password": "other"},
    )
    assert res.status_code == 422


def test_partial_sign_up_points_to_refresh(client, profile_store):
    profile_store.fail_create = True
    res = client.post("/auth/signup", json={"email": "a@harbourclub.org", "password": PASSWORD})
    assert res.status_code == 409
    detail = res.json()["detail"]
    assert detail["kind"] == "profile_insert"
    assert detail["action"] == "/auth/me/refresh"

    me = client.get("/auth/me").json()
    assert me["signed_in"] is True
    assert me["profile_missing"] is True

    profile_store.put(me["user_id"], email="a@harbourclub.org")
    refreshed = client.post("/auth/me/refresh").json()
    assert refreshed["profile"]["user_id"] == me["user_id"]
    assert refreshed["profile_missing"] is False


def test_sign_in_failure_is_verbatim(client, make_member):
    make_member("ops@marina.org")
    res = client.post("/auth/signin", json={"email": "ops@marina.org", "password": "bad"})
    assert res.status_code == 400
    assert res.json()["detail"] == {
        "kind": "credential",
        "message": "Invalid login credentials",
    }


def test_sign_in_and_me(client, make_member):
    user_id = make_member("ops@marina.org", first_name="Ana")
    body = sign_in(client, "ops@marina.org")
    assert body["user_id"] == user_id
    assert body["profile"]["first_name"] == "Ana"

    me = client.get("/auth/me").json()
    assert me["signed_in"] is True
    assert me["email"] == "ops@marina.org"


def test_sign_out_redirects_home_and_clears_session(client, app, backends, make_member):
    make_member("ops@marina.org")
    sign_in(client, "ops@marina.org")

    res = client.post("/auth/signout", follow_redirects=False)
    assert res.status_code == 303
    assert res.headers["location"] == "/"
    assert client.get("/auth/me").json()["signed_in"] is False
    assert backends.clients[0].closed
    assert len(app.state.registry) == 0


def test_sign_out_when_provider_is_down(client, backends, make_member):
    make_member("ops@marina.org")
    sign_in(client, "ops@marina.org")
    backends.clients[-1].fail_sign_out = True

    res = client.post("/auth/signout", follow_redirects=False)
    assert res.status_code == 303
    assert res.headers["location"] == "/"
    assert client.get("/auth/me").json()["signed_in"] is False


def test_update_me(client, profile_store, make_member):
    user_id = make_member("ops@marina.org", role="marina")
    sign_in(client, "ops@marina.org")

    res = client.patch("/auth/me", json={"job_title": "Harbour master"})
    assert res.status_code == 200
    assert res.json()["profile"]["job_title"] == "Harbour master"

    res = client.patch("/auth/me", json={"role": "admin"})
    assert res.status_code == 422
    assert profile_store.rows[user_id]["role"] == "marina"


def test_update_me_requires_sign_in(client):
    res = client.patch("/auth/me", json={"job_title": "CEO"})
    assert res.status_code == 401
    assert res.json()["detail"]["kind"] == "not_authenticated"


# -------- password recovery --------


def test_recovery_link_is_redirected_before_bootstrap(client, app):
    res = client.get("/?type=recovery&token_hash=abc123", follow_redirects=False)
    assert res.status_code == 307
    assert res.headers["location"] == "/reset-password?type=recovery&token_hash=abc123"
    assert len(app.state.registry) == 0


def test_api_writes_carrying_recovery_marker_are_not_redirected(client, make_member):
    make_member("ops@marina.org")
    res = client.post(
        "/auth/signin?type=recovery&token_hash=abc123",
        json={"email": "ops@marina.org", "password": PASSWORD},
        follow_redirects=False,
    )
    assert res.status_code == 200
    assert res.json()["signed_in"] is True


def test_fragment_detection_endpoint(client):
    res = client.post(
        "/auth/recovery/detect",
        json={"url": "https://m3.test/#type=recovery&token_hash=abc123"},
    )
    assert res.json()["redirect_to"] == "/reset-password?type=recovery&token_hash=abc123"

    res = client.post(
        "/auth/recovery/detect",
        json={"url": "https://m3.test/reset-password?type=recovery&token_hash=abc123"},
    )
    assert res.json()["redirect_to"] is None


def test_password_reset_end_to_end(client, auth_server, make_member):
    make_member("ops@marina.org", password="old-password")

    res = client.post("/auth/password-reset", json={"email": "ops@marina.org"})
    assert res.status_code == 202
    assert auth_server.reset_requests == [
        ("ops@marina.org", "http://localhost:5173/reset-password")
    ]

    token = auth_server.issue_recovery_token("ops@marina.org")
    page = client.get(f"/?type=recovery&token_hash={token}")
    assert page.json()["state"] == "verified"

    # reload of the same link does not spend the token again
    reload = client.get(f"/reset-password?type=recovery&token_hash={token}")
    assert reload.json()["state"] == "verified"

    res = client.post(
        "/reset-password",
        json={"token_hash": token, "password": "short", "confirm_password": "short"},
    )
    assert res.json()["state"] == "verified"
    assert res.json()["error"] == "Password must be at least 6 characters"

    res = client.post(
        "/reset-password",
        json={
            "token_hash": token,
            "password": "brand-new-pw",
            "confirm_password": "brand-new-pw",
        },
    )
    body = res.json()
    assert body["state"] == "succeeded"
    assert body["redirect_to"] == "/"
    assert body["redirect_after_seconds"] == 2
    assert res.headers["refresh"] == "2; url=/"

    sign_in(client, "ops@marina.org", "brand-new-pw")


def test_recovery_page_rejects_wrong_link_type(client, recovery_connector):
    body = client.get("/reset-password?type=signup&token_hash=abc").json()
    assert body["state"] == "invalid_link"
    assert recovery_connector.clients == []


# -------- gated content --------


@pytest.fixture
def library():
    rows = [
        Resource(
            title="Shore power guide",
            summary="Electrify your pontoons",
            content="Full guide",
            type="guide",
            topic="energy",
            access_level="public",
            file_url="https://files.test/public.pdf",
        ),
        Resource(
            title="Members whitepaper",
            summary="Digital berth booking",
            content="Members body",
            type="whitepaper",
            topic="digital",
            access_level="members",
            file_url="https://files.test/members.pdf",
        ),
        Resource(
            title="Marina benchmark",
            summary="Operator KPIs",
            content="Marina body",
            type="case_study",
            topic="operations",
            access_level="marina",
            file_url="https://files.test/marina.pdf",
        ),
        Resource(
            title="Draft",
            summary="unpublished",
            type="article",
            topic="misc",
            published=False,
        ),
    ]
    add_rows(*rows)
    return {r.access_level if r.published else "draft": str(r.id) for r in rows}


def by_title(items):
    return {item["title"]: item for item in items}


def test_guest_sees_locked_teasers(client, library):
    items = by_title(client.get("/resources").json())
    assert "Draft" not in items
    assert items["Shore power guide"]["locked"] is False
    assert items["Shore power guide"]["file_url"] == "https://files.test/public.pdf"

    marina = items["Marina benchmark"]
    assert marina["locked"] is True
    assert marina["lock_reason"] == "verify_marina_to_access"
    assert marina["file_url"] is None
    assert marina["content"] is None
    assert items["Members whitepaper"]["lock_reason"] == "signup_to_access"


def test_pending_marina_sees_members_but_not_marina(client, library, make_member):
    make_member("ops@marina.org", role="marina", status="pending")
    sign_in(client, "ops@marina.org")
    items = by_title(client.get("/resources").json())
    assert items["Members whitepaper"]["locked"] is False
    assert items["Marina benchmark"]["locked"] is True


def test_verified_marina_unlocks_marina_content(client, library, make_member):
    make_member("ops@marina.org", role="marina", status="verified")
    sign_in(client, "ops@marina.org")
    res = client.get(f"/resources/{library['marina']}")
    assert res.json()["locked"] is False
    assert res.json()["file_url"] == "https://files.test/marina.pdf"


def test_resource_filters(client, library):
    assert [r["title"] for r in client.get("/resources?type=guide").json()] == [
        "Shore power guide"
    ]
    assert [r["title"] for r in client.get("/resources?search=BERTH").json()] == [
        "Members whitepaper"
    ]
    assert client.get("/resources?type=podcast").status_code == 422


def test_unpublished_resource_is_not_found(client, library):
    assert client.get(f"/resources/{library['draft']}").status_code == 404


def test_events_and_calendar_export(client):
    soon = Event(
        title="Green marinas webinar",
        description="Line one\nLine two",
        date_time=utcnow() + timedelta(days=3),
        access_level="public",
    )
    past = Event(
        title="Annual roundtable",
        description="Replay available",
        date_time=utcnow() - timedelta(days=30),
        location="Monaco",
        access_level="members",
        replay_url="https://video.test/replay",
    )
    add_rows(soon, past)

    upcoming = client.get("/events").json()
    assert [e["title"] for e in upcoming] == ["Green marinas webinar"]

    previous = client.get("/events?when=past").json()
    assert previous[0]["locked"] is True
    assert previous[0]["replay_url"] is None

    res = client.get(f"/events/{soon.id}/ics")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/calendar")
    assert 'filename="Green_marinas_webinar.ics"' in res.headers["content-disposition"]
    assert "PRODID:-//M3 Connect//Events//EN" in res.text
    assert "LOCATION:Online" in res.text
    assert "DESCRIPTION:Line one\\nLine two" in res.text


def test_calendar_export_with_non_latin1_title(client):
    event = Event(
        title="Salon – Monaco €",
        description="Stands",
        date_time=utcnow() + timedelta(days=5),
    )
    add_rows(event)

    res = client.get(f"/events/{event.id}/ics")
    assert res.status_code == 200
    disposition = res.headers["content-disposition"]
    assert 'filename="Salon_Monaco.ics"' in disposition
    assert "filename*=UTF-8''Salon_%E2%80%93_Monaco_%E2%82%AC.ics" in disposition
    assert "SUMMARY:Salon – Monaco €" in res.text


# -------- leads and projects --------


LEAD = {
    "first_name": "Marc",
    "last_name": "Durand",
    "email": "marc@solardocks.com",
    "company": "Solar Docks",
    "country": "France",
    "actor_type": "energy",
    "engagement_level": "call",
}


def test_partner_lead_requires_consent(client):
    assert client.post("/partner-leads", json={**LEAD, "consent": False}).status_code == 422

    res = client.post("/partner-leads", json={**LEAD, "consent": True})
    assert res.status_code == 201
    assert res.json()["status"] == "new"
    with Session(engine) as session:
        lead = session.get(PartnerLead, uuid.UUID(res.json()["id"]))
        assert lead.company == "Solar Docks"


PROJECT = {
    "project_type": "energy",
    "budget_range": "50k_100k",
    "timeline": "0_12_months",
    "description": "Solar canopy over the dry stack",
    "consent": True,
}


def test_project_submission_requires_sign_in(client):
    assert client.post("/projects", json=PROJECT).status_code == 401


def test_pending_marina_is_sent_to_account_page(client, make_member):
    make_member("ops@marina.org", role="marina", status="pending")
    sign_in(client, "ops@marina.org")

    res = client.post("/projects", json=PROJECT)
    assert res.status_code == 403
    assert res.json()["detail"]["redirect_to"] == "/account"


def test_verification_then_refresh_unlocks_submission(client, profile_store, make_member):
    user_id = make_member("ops@marina.org", role="marina", status="pending")
    sign_in(client, "ops@marina.org")
    assert client.post("/projects", json=PROJECT).status_code == 403

    # administrator verifies the operator out of band
    profile_store.rows[user_id]["status"] = "verified"
    assert client.post("/auth/me/refresh").json()["can_submit_project"] is True

    res = client.post("/projects", json=PROJECT)
    assert res.status_code == 201, res.text
    assert res.json()["user_id"] == user_id

    mine = client.get("/projects/me").json()
    assert [p["id"] for p in mine] == [res.json()["id"]]


# -------- back office --------


def test_admin_requires_admin_role(client, make_member):
    assert client.get("/admin/users").status_code == 401

    make_member("ops@marina.org", role="marina", status="verified")
    sign_in(client, "ops@marina.org")
    assert client.get("/admin/users").status_code == 403


def test_admin_moderation(client, profile_store, make_member):
    make_member("admin@m3connect.com", role="admin", status="verified", first_name="Ada")
    marina_id = make_member(
        "ops@marina.org",
        role="marina",
        status="pending",
        first_name="Ana",
        organization_name="Port Vell",
    )
    sign_in(client, "admin@m3connect.com")

    pending = client.get("/admin/users?status=pending").json()
    assert [p["user_id"] for p in pending] == [marina_id]
    assert [p["user_id"] for p in client.get("/admin/users?search=vell").json()] == [marina_id]

    res = client.patch(f"/admin/users/{marina_id}/status", json={"status": "verified"})
    assert res.status_code == 200
    assert res.json()["status"] == "verified"
    assert profile_store.rows[marina_id]["status"] == "verified"

    assert client.patch(f"/admin/users/{marina_id}/role", json={"role": "owner"}).status_code == 422
    assert client.patch("/admin/users/nobody/role", json={"role": "partner"}).status_code == 404

    export = client.get("/admin/users/export?role=marina")
    assert export.headers["content-type"].startswith("text/csv")
    lines = export.text.strip().splitlines()
    assert lines[0] == "Name,Email,Organization,Type,Country,Role,Status,Created"
    assert lines[1].startswith("Ana,ops@marina.org,Port Vell,")


def test_admin_triages_leads_and_projects(client, make_member):
    make_member("admin@m3connect.com", role="admin", status="verified")
    lead = PartnerLead(**{k: v for k, v in LEAD.items()})
    project = MarinaProject(
        user_id="u-1",
        project_type="digital",
        budget_range="under_10k",
        timeline="24_plus",
        description="Berth sensors",
    )
    add_rows(lead, project)
    sign_in(client, "admin@m3connect.com")

    res = client.patch(
        f"/admin/leads/{lead.id}", json={"status": "qualified", "admin_notes": "Call Monday"}
    )
    assert res.json()["status"] == "qualified"
    assert client.get("/admin/leads?status=qualified").json()[0]["admin_notes"] == "Call Monday"

    res = client.patch(f"/admin/projects/{project.id}", json={"status": "in_progress"})
    assert res.json()["status"] == "in_progress"
    assert client.patch(f"/admin/projects/{project.id}", json={"status": "won"}).status_code == 422


def test_admin_content_management(client, make_member):
    make_member("admin@m3connect.com", role="admin", status="verified")
    sign_in(client, "admin@m3connect.com")

    res = client.post(
        "/admin/resources",
        json={
            "title": "Dredging handbook",
            "summary": "Permits and timing",
            "type": "guide",
            "topic": "infrastructure",
            "access_level": "marina",
            "file_url": "https://files.test/dredging.pdf",
        },
    )
    assert res.status_code == 201
    assert res.json()["locked"] is False
    resource_id = res.json()["id"]

    assert client.delete(f"/admin/resources/{resource_id}").status_code == 204
    assert client.get(f"/resources/{resource_id}").status_code == 404

    res = client.post(
        "/admin/events",
        json={
            "title": "Port tech day",
            "description": "On site",
            "date_time": "2031-05-04T09:00:00+02:00",
        },
    )
    assert res.status_code == 201
    assert res.json()["date_time"].startswith("2031-05-04T07:00:00")
