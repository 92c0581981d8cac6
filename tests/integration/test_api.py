"""
Integration Tests - HTTP API
"""
import pytest

from cardlink.database.connection import get_db
from cardlink.database.models import Account, ViewEvent
from sqlalchemy import select

API = "/api/v1"
GOOGLE_UID = "google-uid-123"


async def register(client, account_id, **headers):
    response = await client.post(f"{API}/slug", json={"accountId": account_id}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


async def fetch_account(account_id) -> Account:
    async with get_db() as db:
        return await db.get(Account, account_id)


class TestSlugEndpoints:
    """Tests for /slug"""

    async def test_register_slug(self, client, make_account):
        account = await make_account(full_name="Jane Doe")

        body = await register(client, account.id, origin="https://cards.example.com")

        assert body["success"] is True
        assert body["slug"] == f"jane-doe-{account.id[:6]}"
        assert body["publicUrl"] == f"https://cards.example.com/card/{body['slug']}"

    async def test_register_uses_default_base_url(self, client, make_account):
        account = await make_account()

        body = await register(client, account.id)

        assert body["publicUrl"].startswith("http://localhost:5173/card/")

    async def test_register_missing_account_id(self, client, database):
        response = await client.post(f"{API}/slug", json={})

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert "accountId" in response.json()["error"]

    async def test_register_unknown_account(self, client, database):
        response = await client.post(f"{API}/slug", json={"accountId": "missing"})

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "User not found", "details": {"account_id": "missing"}}

    async def test_resolve_returns_profile_and_counts_view(self, client, make_account):
        account = await make_account(full_name="Jane Doe", company_name="Acme")
        slug = (await register(client, account.id))["slug"]

        response = await client.get(f"{API}/slug/{slug}", headers={"User-Agent": "card-test", "X-Forwarded-For": "203.0.113.9, 10.0.0.1"})

        assert response.status_code == 200
        body = response.json()
        assert body["slug"] == slug
        assert body["account"]["fullName"] == "Jane Doe"
        assert body["account"]["companyName"] == "Acme"
        assert "googleUid" not in body["account"]

        stored = await fetch_account(account.id)
        assert stored.total_views == 1
        async with get_db() as db:
            event = (await db.execute(select(ViewEvent))).scalar_one()
        assert event.slug == slug
        assert event.user_agent == "card-test"
        assert event.ip == "203.0.113.9"

    async def test_resolve_unknown_slug(self, client, database):
        response = await client.get(f"{API}/slug/nobody-000000")

        assert response.status_code == 404
        assert response.json()["error"] == "URL not found"

    async def test_deactivate(self, client, make_account):
        account = await make_account()
        slug = (await register(client, account.id))["slug"]

        response = await client.post(f"{API}/slug/{slug}/deactivate")

        assert response.status_code == 200
        assert response.json()["active"] is False
        resolved = await client.get(f"{API}/slug/{slug}")
        assert resolved.status_code == 404
        assert resolved.json()["error"] == "URL is no longer active"


class TestIdentityEndpoints:
    """Tests for /identity"""

    async def link(self, client, account_id, slug, proof, external_id=GOOGLE_UID):
        return await client.post(f"{API}/identity/link", json={
            "accountId": account_id,
            "slug": slug,
            "externalId": external_id,
            "email": "jane@gmail.com",
            "proof": proof,
        })

    async def test_link_login_verify(self, client, make_account, make_proof):
        account = await make_account()
        slug = (await register(client, account.id))["slug"]
        proof = make_proof(GOOGLE_UID, email="jane@gmail.com")

        linked = await self.link(client, account.id, slug, proof)
        assert linked.status_code == 200
        assert linked.json()["linked"] is True
        assert linked.json()["accountId"] == account.id
        assert linked.json()["googleEmail"] == "jane@gmail.com"

        login = await client.post(f"{API}/identity/login", json={"proof": proof})
        assert login.status_code == 200
        token = login.json()["token"]
        assert login.json()["account"]["urlSlug"] == slug

        verified = await client.get(f"{API}/identity/verify", headers={"Authorization": f"Bearer {token}"})
        assert verified.status_code == 200
        assert verified.json()["valid"] is True
        assert verified.json()["claims"]["accountId"] == account.id
        assert verified.json()["claims"]["role"] == "user"

    async def test_link_twice_conflicts(self, client, make_account, make_proof):
        account = await make_account()
        slug = (await register(client, account.id))["slug"]
        await self.link(client, account.id, slug, make_proof(GOOGLE_UID))

        response = await self.link(client, account.id, slug, make_proof("google-uid-456"), external_id="google-uid-456")

        assert response.status_code == 409

    async def test_link_slug_mismatch(self, client, make_account, make_proof):
        account = await make_account()
        await register(client, account.id)

        response = await self.link(client, account.id, "forged-slug", make_proof(GOOGLE_UID))

        assert response.status_code == 403
        assert response.json()["error"] == "Invalid registration link"

    async def test_link_bad_proof(self, client, make_account):
        account = await make_account()
        slug = (await register(client, account.id))["slug"]

        response = await self.link(client, account.id, slug, "garbage")

        assert response.status_code == 401

    async def test_link_missing_fields(self, client, database):
        response = await client.post(f"{API}/identity/link", json={"accountId": "a"})

        assert response.status_code == 400

    async def test_login_unregistered(self, client, database, make_proof):
        response = await client.post(f"{API}/identity/login", json={"proof": make_proof("never-linked")})

        assert response.status_code == 404

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer not-a-token"}])
    async def test_verify_rejects(self, client, database, headers):
        response = await client.get(f"{API}/identity/verify", headers=headers)

        assert response.status_code == 401
        assert response.json()["success"] is False


class TestEventEndpoints:
    """Tests for /events"""

    async def test_view_and_contact_save(self, client, make_account):
        account = await make_account()

        view = await client.post(f"{API}/events/view", json={"accountId": account.id, "metadata": {"source": "nfc"}})
        save = await client.post(f"{API}/events/contact-save", json={"accountId": account.id})

        assert view.status_code == 200
        assert view.json()["tracked"] is True
        assert "timestamp" in view.json()
        assert save.status_code == 200
        stored = await fetch_account(account.id)
        assert (stored.total_views, stored.total_contact_saves) == (1, 1)

    async def test_missing_account_id(self, client, database):
        response = await client.post(f"{API}/events/view", json={"slug": "x"})

        assert response.status_code == 400

    async def test_unknown_account_is_server_error(self, client, database):
        response = await client.post(f"{API}/events/contact-save", json={"accountId": "missing"})

        assert response.status_code == 500
        assert response.json()["error"] == "User not found"


class TestAnalyticsEndpoints:
    """Tests for /analytics and /accounts"""

    async def test_global_report(self, client, make_account):
        account = await make_account(company_name="Acme")
        await client.post(f"{API}/events/view", json={"accountId": account.id})

        response = await client.get(f"{API}/analytics")

        assert response.status_code == 200
        body = response.json()
        assert body["totalUsers"] == 1
        assert body["totalProfileViews"] == 1
        assert body["topCompanies"] == [{"name": "Acme", "count": 1}]
        assert body["recentViews"][0]["accountId"] == account.id

    async def test_account_report(self, client, make_account):
        account = await make_account()
        await client.post(f"{API}/events/view", json={"accountId": account.id})

        response = await client.get(f"{API}/analytics/accounts/{account.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["accountId"] == account.id
        assert body["statistics"]["totalViews"] == 1
        assert body["trends"]["viewsLast7Days"] == 1
        assert len(body["chartData"]["daily"]) == 30

    async def test_account_report_unknown(self, client, database):
        response = await client.get(f"{API}/analytics/accounts/missing")

        assert response.status_code == 404

    async def test_list_accounts(self, client, make_account):
        await make_account(id="a1", full_name="Ada Lovelace", company_name="Engines Ltd")
        await make_account(id="a2", full_name="Grace Hopper", company_name="Navy")

        response = await client.get(f"{API}/accounts", params={"search": "grace"})

        assert response.status_code == 200
        body = response.json()
        assert [item["id"] for item in body["items"]] == ["a2"]
        assert body["hasMore"] is False
        assert body["items"][0]["totalViews"] == 0

    async def test_list_accounts_bad_limit(self, client, database):
        response = await client.get(f"{API}/accounts", params={"limit": 500})

        assert response.status_code == 400


class TestHealthEndpoints:
    """Tests for health probes"""

    async def test_health(self, client, database):
        response = await client.get(f"{API}/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.headers["X-Request-ID"]

    async def test_ready(self, client, database):
        response = await client.get(f"{API}/health/ready")

        assert response.json() == {"status": "ready"}
