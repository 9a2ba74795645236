"""End-to-end tests through the FastAPI app (static rate source, temp sqlite)."""
from datetime import date, datetime, timedelta, timezone

from app.core.errors import StoreError
from app.db.dal import Database


def post_tx(client, headers, **body):
    payload = {"amount": 1000, "pillar": "Spend", "account": "Cash"}
    payload.update(body)
    resp = client.post("/transactions", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_health_and_root(client):
    assert client.get("/health").json() == {"status": "ok", "version": "0.1.0"}
    assert client.get("/").status_code == 200


def test_user_header_is_required(client):
    resp = client.get("/transactions")
    assert resp.status_code == 400
    assert resp.json()["error"] == "http_error"


def test_unknown_route_is_json_not_found(client, user_headers):
    resp = client.get("/nope", headers=user_headers)
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_validation_errors_are_json(client, user_headers):
    resp = client.post(
        "/transactions",
        json={"amount": -5, "pillar": "Gift", "account": "Cash"},
        headers=user_headers,
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"] == "validation_error"
    assert {tuple(e["loc"])[-1] for e in body["detail"]} >= {"amount", "pillar"}


def test_profile_onboarding_flow(client, user_headers):
    assert client.get("/profile", headers=user_headers).json()["onboarding_completed"] is False

    resp = client.put(
        "/profile/onboarding", json={"full_name": " Ana "}, headers=user_headers
    )
    assert resp.status_code == 200
    assert resp.json()["full_name"] == "Ana"
    assert resp.json()["onboarding_completed"] is True


def test_currency_preference(client, user_headers):
    assert client.get("/profile/currency", headers=user_headers).json()["currency"] == "COP"

    resp = client.put("/profile/currency", json={"currency": "usd"}, headers=user_headers)
    assert resp.status_code == 200
    assert resp.json()["locale"] == "en-US"

    assert client.put(
        "/profile/currency", json={"currency": "JPY"}, headers=user_headers
    ).status_code == 400
    assert client.get("/profile/currency", headers=user_headers).json()["currency"] == "USD"


def test_transaction_in_foreign_currency_is_stored_in_record_currency(client, user_headers):
    created = post_tx(client, user_headers, amount=10, currency="USD", pillar="Earn")
    assert created["amount"] == 40000
    assert created["original_amount"] == 10
    assert created["original_currency"] == "USD"
    assert created["exchange_rate"] == 4000
    assert created["display_currency"] == "COP"
    assert created["formatted"] == "$ 40.000"

    in_usd = client.get(
        f"/transactions/{created['id']}", params={"currency": "USD"}, headers=user_headers
    ).json()
    assert in_usd["display_amount"] == 10
    assert in_usd["formatted"] == "$10"


def test_transaction_with_unknown_currency_is_rejected(client, user_headers):
    resp = client.post(
        "/transactions",
        json={"amount": 5, "currency": "JPY", "pillar": "Spend", "account": "Cash"},
        headers=user_headers,
    )
    assert resp.status_code == 400


def test_transaction_crud_and_filters(client, user_headers):
    food = post_tx(client, user_headers, category="Food", tag="weekly-market")
    post_tx(client, user_headers, category="Home", tag="rent", amount=3000)
    post_tx(client, user_headers, pillar="Earn", amount=10000, category="Salary")

    listed = client.get("/transactions", params={"category": "Food"}, headers=user_headers).json()
    assert [t["id"] for t in listed] == [food["id"]]
    tagged = client.get("/transactions", params={"tag": "market"}, headers=user_headers).json()
    assert [t["id"] for t in tagged] == [food["id"]]

    summary = client.get("/transactions/summary", headers=user_headers).json()
    assert summary["income"] == 10000
    assert summary["expenses"] == 4000
    assert summary["balance"] == 6000
    assert summary["formatted_balance"] == "$ 6.000"

    patched = client.patch(
        f"/transactions/{food['id']}", json={"amount": 2, "currency": "USD"}, headers=user_headers
    ).json()
    assert patched["amount"] == 8000
    assert patched["category"] == "Food"

    assert client.patch(
        f"/transactions/{food['id']}", json={}, headers=user_headers
    ).status_code == 422

    assert client.delete(f"/transactions/{food['id']}", headers=user_headers).status_code == 204
    missing = client.get(f"/transactions/{food['id']}", headers=user_headers)
    assert missing.status_code == 404
    assert missing.json()["error"] == "not_found"


def test_date_filter_rejects_inverted_range(client, user_headers):
    resp = client.get(
        "/transactions",
        params={"start_date": "2025-02-01", "end_date": "2025-01-01"},
        headers=user_headers,
    )
    assert resp.status_code == 400


def test_other_users_cannot_see_transactions(client, user_headers):
    created = post_tx(client, user_headers)
    other = {"X-User-Id": "someone-else"}
    assert client.get("/transactions", headers=other).json() == []
    assert client.get(f"/transactions/{created['id']}", headers=other).status_code == 404


def test_reset_transactions(client, user_headers):
    post_tx(client, user_headers)
    post_tx(client, user_headers)
    resp = client.delete("/transactions", headers=user_headers)
    assert resp.json() == {"status": "reset", "deleted": 2, "goals_deleted": 0}
    assert client.get("/transactions", headers=user_headers).json() == []


def test_dashboard_scenarios(client, user_headers):
    post_tx(client, user_headers, amount=100000, currency="COP", pillar="Earn", account="Nequi")
    post_tx(client, user_headers, amount=50000, currency="COP", pillar="Spend", account="Nequi")

    in_cop = client.get("/dashboard", headers=user_headers).json()
    assert in_cop["totals"]["Earn"] == 100000
    assert in_cop["totals"]["Spend"] == 50000
    assert in_cop["health"]["score"] == 0
    assert in_cop["health"]["status"] == "critical"
    assert in_cop["accounts"] == [
        {"account": "Nequi", "balance": 50000, "negative": False, "formatted": "$ 50.000"}
    ]

    in_usd = client.get("/dashboard", params={"currency": "USD"}, headers=user_headers).json()
    assert in_usd["totals"]["Earn"] == 25.0
    assert in_usd["totals"]["Spend"] == 12.5
    assert in_usd["formatted_totals"]["Spend"] == "$12.5"
    assert in_usd["rates_pivot"] == "USD"
    assert in_usd["unconverted"] == 0


def test_dashboard_breakdowns(client, user_headers):
    post_tx(client, user_headers, amount=300, category="Home")
    post_tx(client, user_headers, amount=100, category="")
    post_tx(client, user_headers, amount=1000, pillar="Earn")

    categories = client.get("/dashboard/categories", headers=user_headers).json()
    assert [(c["category"], c["percent"]) for c in categories] == [("Home", 75.0), ("Other", 25.0)]

    flow = client.get("/dashboard/cash-flow", headers=user_headers).json()
    assert len(flow) == 1
    assert flow[0]["earn"] == 1000 and flow[0]["spend"] == 400

    health = client.get("/dashboard/health", headers=user_headers).json()
    assert health["score"] == 0


def test_goal_projection_scenario(client, user_headers):
    post_tx(
        client,
        user_headers,
        amount=100000,
        pillar="Save",
        date=(datetime.now(timezone.utc) - timedelta(days=3)).isoformat(),
    )
    resp = client.post(
        "/goals",
        json={
            "name": "Emergency fund",
            "target_amount": 1000000,
            "current_amount": 200000,
            "deadline": (date.today() + timedelta(days=365)).isoformat(),
        },
        headers=user_headers,
    )
    assert resp.status_code == 201, resp.text
    goal = resp.json()
    assert goal["progress"] == 20
    assert goal["projection"] == {
        "remaining": 800000,
        "monthly_savings": 100000,
        "months": 8,
        "determined": True,
    }
    assert goal["formatted_target"] == "$ 1.000.000"

    patched = client.patch(
        f"/goals/{goal['id']}", json={"current_amount": 1000000}, headers=user_headers
    ).json()
    assert patched["progress"] == 100
    assert patched["projection"]["months"] == 0

    assert client.delete(f"/goals/{goal['id']}", headers=user_headers).status_code == 204
    assert client.get("/goals", headers=user_headers).json() == []


def test_goal_without_savings_is_undetermined(client, user_headers):
    client.post(
        "/goals",
        json={"name": "Car", "target_amount": 5000, "deadline": "2030-01-01"},
        headers=user_headers,
    )
    goal = client.get("/goals", headers=user_headers).json()[0]
    assert goal["projection"]["months"] is None
    assert goal["projection"]["determined"] is False


def test_rates_endpoints(client, user_headers):
    matrix = client.get("/rates/matrix", params={"pivot": "COP"}, headers=user_headers).json()
    assert matrix["pivot"] == "USD"
    assert matrix["rates"]["COP"] == 4000

    conv = client.get(
        "/rates/convert", params={"amount": 100000, "from": "COP", "to": "USD"}, headers=user_headers
    ).json()
    assert conv["amount"] == 25.0
    assert conv["converted"] is True

    missing = client.get(
        "/rates/convert", params={"amount": 7, "from": "JPY", "to": "USD"}, headers=user_headers
    ).json()
    assert missing["amount"] == 7
    assert missing["converted"] is False


def test_rate_overrides(client, user_headers):
    resp = client.post(
        "/rates/overrides", json={"currency": "COP", "rate": 3800, "ttl_seconds": 60}, headers=user_headers
    )
    assert resp.status_code == 200
    assert "COP" in client.get("/rates/overrides", headers=user_headers).json()

    matrix = client.get("/rates/matrix", headers=user_headers).json()
    assert matrix["rates"]["COP"] == 3800

    assert client.post(
        "/rates/overrides", json={"currency": "USD", "rate": 2}, headers=user_headers
    ).status_code == 400
    assert client.delete("/rates/overrides/cop", headers=user_headers).status_code == 200
    assert client.delete("/rates/overrides/cop", headers=user_headers).status_code == 404


def test_overrides_can_be_disabled(settings):
    from fastapi.testclient import TestClient

    from app.main import create_app

    settings.enable_rate_override = False
    with TestClient(create_app(settings_override=settings)) as c:
        assert c.get("/rates/overrides", headers={"X-User-Id": "u"}).status_code == 403


def test_compound_interest(client, user_headers):
    resp = client.post(
        "/strategy/compound-interest",
        json={"initial_amount": 1000, "monthly_contribution": 100, "annual_rate_pct": 0, "years": 1},
        headers=user_headers,
    )
    body = resp.json()
    assert body["final_balance"] == 2200
    assert body["formatted_final_balance"] == "$ 2.200"
    assert len(body["yearly"]) == 2


def test_store_failure_maps_to_503(client, user_headers, monkeypatch):
    def boom(self, *args, **kwargs):
        raise StoreError("Could not load transactions. Please try again.")

    monkeypatch.setattr(Database, "list_transactions", boom)
    resp = client.get("/transactions", headers=user_headers)
    assert resp.status_code == 503
    assert resp.json() == {
        "error": "store_error",
        "detail": "Could not load transactions. Please try again.",
    }


def test_patch_rejects_null_on_required_columns(client, user_headers):
    created = post_tx(client, user_headers)
    for body in ({"account": None}, {"pillar": None}, {"date": None}, {"amount": None}):
        resp = client.patch(f"/transactions/{created['id']}", json=body, headers=user_headers)
        assert resp.status_code == 422, body
        assert resp.json()["error"] == "validation_error"
    assert client.get(f"/transactions/{created['id']}", headers=user_headers).json()["account"] == "Cash"

    cleared = client.patch(
        f"/transactions/{created['id']}",
        json={"tag": None, "description": "market"},
        headers=user_headers,
    )
    assert cleared.status_code == 200
    assert cleared.json()["tag"] is None

    goal = client.post(
        "/goals",
        json={"name": "Trip", "target_amount": 5000, "deadline": "2030-01-01"},
        headers=user_headers,
    ).json()
    resp = client.patch(f"/goals/{goal['id']}", json={"name": None}, headers=user_headers)
    assert resp.status_code == 422
    assert client.get("/goals", headers=user_headers).json()[0]["name"] == "Trip"


def test_form_options(client, user_headers):
    body = client.get("/profile/form-options", headers=user_headers).json()
    assert body["pillars"] == ["Earn", "Spend", "Save", "Invest"]
    assert "Nequi" in body["accounts"]
    assert body["categories"] == sorted(body["categories"])
    assert body["currencies"][0] == "COP"


def test_goal_without_rate_stays_in_record_currency(settings, user_headers):
    from fastapi.testclient import TestClient

    from app.main import create_app

    settings.supported_currencies = ["COP", "USD", "JPY"]
    with TestClient(create_app(settings_override=settings)) as c:
        c.post(
            "/goals",
            json={"name": "Car", "target_amount": 8000, "current_amount": 2000, "deadline": "2030-01-01"},
            headers=user_headers,
        )
        goal = c.get("/goals", params={"currency": "JPY"}, headers=user_headers).json()[0]

    assert goal["converted"] is False
    assert goal["currency"] == "COP"
    assert goal["target_amount"] == 8000
    assert goal["formatted_target"] == "$ 8.000"
    assert goal["projection"]["remaining"] == 6000
    assert goal["projection"]["determined"] is False
