"""
Shared fixtures: an in-memory stand-in for the Ledger REST API served through
``httpx.MockTransport``, plus a logged-in TestClient for the web app.
"""
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from ledger_client import LedgerClient
from main import app, get_ledger

BASE_URL = "https://ledger.test"

ACTION_STATUS = {
    "approve": "approved",
    "reject": "rejected",
    "post": "posted",
    "pay": "paid",
}


def envelope(data, code=200, message="OK"):
    return {"status": "success", "code": code, "message": message, "data": data}


class FakeLedger:
    """Just enough of the Ledger API for the back-office to talk to."""

    def __init__(self):
        self.requests = []
        self.fail = None  # (status, message) returned for every write while set
        self.stores = {
            "accounts": {},
            "fiscal-periods": {},
            "expense-categories": {},
            "operational-expenses": {},
            "journal-entries": {},
            "ad-budgets": {},
            "capital-investors": {},
        }
        self._next_id = 100

        for acc_id, code, name, typ in [
            (1, "1010", "Bank - Operating Account", "asset"),
            (2, "5200", "Advertising & Marketing", "expense"),
            (3, "4000", "Sales Revenue", "revenue"),
        ]:
            self.stores["accounts"][acc_id] = {
                "id": acc_id, "account_code": code, "account_name": name,
                "account_type": typ, "is_active": True,
            }
        self.stores["accounts"][4] = {
            "id": 4, "account_code": "1999", "account_name": "Old Suspense",
            "account_type": "asset", "is_active": False,
        }
        self.stores["fiscal-periods"][1] = {
            "id": 1, "period_name": "January 2025", "period_start": "2025-01-01",
            "period_end": "2025-01-31", "is_closed": False,
        }
        self.stores["fiscal-periods"][2] = {
            "id": 2, "period_name": "December 2024", "period_start": "2024-12-01",
            "period_end": "2024-12-31", "is_closed": True,
        }
        self.stores["expense-categories"][1] = {"id": 1, "category_name": "Office Supplies"}

    # ---------------------- Seeding helpers ----------------------
    def new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def add_entry(self, status="draft", **overrides) -> dict:
        entry_id = overrides.pop("id", None) or self.new_id()
        entry = {
            "id": entry_id,
            "entry_number": f"JE-2025-{entry_id:04d}",
            "entry_date": "2025-01-15",
            "fiscal_period_id": 1,
            "description": "Meta ads top-up",
            "reference_number": "INV-77",
            "status": status,
            "total_debit": 250000,
            "total_credit": 250000,
            "lines": [
                {"id": 1, "account_id": 2, "description": "Meta ads", "debit": 250000, "credit": 0},
                {"id": 2, "account_id": 1, "description": "Paid from bank", "debit": 0, "credit": 250000},
            ],
        }
        entry.update(overrides)
        self.stores["journal-entries"][entry_id] = entry
        return entry

    def add_expense(self, status="pending", created_by=1, **overrides) -> dict:
        expense_id = self.new_id()
        expense = {
            "id": expense_id,
            "expense_number": f"EXP-2025-{expense_id:04d}",
            "expense_date": "2025-01-10",
            "expense_category_id": 1,
            "account_id": 2,
            "amount": 150000,
            "description": "Printer paper",
            "status": status,
            "created_by": created_by,
        }
        expense.update(overrides)
        self.stores["operational-expenses"][expense_id] = expense
        return expense

    def add_ad_budget(self, **overrides) -> dict:
        budget = {
            "id": self.new_id(),
            "platform": "meta_ads",
            "month_year": "2025-01-01",
            "budget_amount": 5000000,
            "spent_amount": 1250000,
            "notes": "Ramadan push",
        }
        budget.update(overrides)
        self.stores["ad-budgets"][budget["id"]] = budget
        return budget

    def add_investor(self, **overrides) -> dict:
        investor = {
            "id": self.new_id(),
            "investor_name": "Budi Santoso",
            "investment_type": "equity",
            "amount": 100000000,
            "investment_date": "2024-06-01",
            "return_paid": 10000000,
            "status": "active",
        }
        investor.update(overrides)
        self.stores["capital-investors"][investor["id"]] = investor
        return investor

    def writes(self, method=None):
        return [r for r in self.requests if r.method != "GET" and (method is None or r.method == method)]

    # ---------------------- Transport ----------------------
    def client(self, token="test-token") -> LedgerClient:
        return LedgerClient(BASE_URL, token=token, transport=httpx.MockTransport(self.handler))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = [p for p in request.url.path.split("/") if p][2:]  # drop api/v1
        method = request.method
        body = json.loads(request.content) if request.content else None

        if self.fail and method != "GET":
            status, message = self.fail
            return httpx.Response(status, json={"status": "error", "code": status, "message": message})

        store = self.stores.get(parts[0])
        if store is None:
            return httpx.Response(404, json={"status": "error", "code": 404, "message": "No such route"})

        if method == "GET" and len(parts) == 1:
            items = list(store.values())
            limit = int(request.url.params.get("limit", 10))
            return httpx.Response(200, json=envelope({
                "page": int(request.url.params.get("page", 1)),
                "limit": limit,
                "total_results": len(items),
                "total_pages": max(1, -(-len(items) // limit)),
                "results": items,
            }))
        if method == "GET" and parts[1] == "no_page":
            return httpx.Response(200, json=envelope(list(store.values())))
        if method == "GET" and parts[1] == "month":
            month = [b for b in store.values() if b["month_year"] == parts[2]]
            return httpx.Response(200, json=envelope(month))
        if method == "GET" and parts[1] == "total":
            amount = sum(i["amount"] for i in store.values())
            paid = sum(i.get("return_paid", 0) for i in store.values())
            return httpx.Response(200, json=envelope({
                "total_amount": amount, "total_return_paid": paid, "total_remaining": amount - paid,
            }))

        if method == "POST" and len(parts) == 1:
            return self._create(parts[0], store, body)

        item = store.get(int(parts[1]))
        if item is None:
            return httpx.Response(404, json={"status": "error", "code": 404, "message": "Not found"})

        if method == "GET":
            return httpx.Response(200, json=envelope(item))
        if method == "PUT":
            item.update(body)
            self._recompute(parts[0], item)
            return httpx.Response(200, json=envelope(item))
        if method == "DELETE":
            del store[item["id"]]
            return httpx.Response(200, json=envelope({"message": "deleted"}))
        if method == "PATCH" and len(parts) == 3:
            item.update(body)
            return httpx.Response(200, json=envelope(item))
        if method == "POST" and len(parts) == 3:
            action = parts[2]
            if action == "close":
                item["is_closed"] = True
            elif action == "reopen":
                item["is_closed"] = False
            else:
                item["status"] = ACTION_STATUS[action]
            return httpx.Response(200, json=envelope(item))
        return httpx.Response(405, json={"status": "error", "code": 405, "message": "Method not allowed"})

    def _create(self, resource, store, body):
        item = dict(body)
        item["id"] = self.new_id()
        if resource == "journal-entries":
            if sum(l["debit"] for l in item["lines"]) != sum(l["credit"] for l in item["lines"]):
                return httpx.Response(400, json={"status": "error", "code": 400, "message": "Journal entry is not balanced"})
            item["entry_number"] = f"JE-2025-{item['id']:04d}"
            item["status"] = "draft"
            self._recompute(resource, item)
        elif resource == "operational-expenses":
            item["expense_number"] = f"EXP-2025-{item['id']:04d}"
            item["status"] = "pending"
            item["created_by"] = 1
        elif resource == "fiscal-periods":
            item["is_closed"] = False
        store[item["id"]] = item
        return httpx.Response(201, json=envelope(item, code=201))

    def _recompute(self, resource, item):
        if resource == "journal-entries":
            item["total_debit"] = sum(l["debit"] for l in item["lines"])
            item["total_credit"] = sum(l["credit"] for l in item["lines"])


@pytest.fixture
def fake_ledger():
    return FakeLedger()


@pytest.fixture
def ledger(fake_ledger):
    client = fake_ledger.client()
    yield client
    client.close()


def login(client: TestClient, role: str = "admin", user_id: int = 1):
    response = client.post(
        "/session",
        data={"access_token": "test-token", "role": role, "user_id": str(user_id)},
        follow_redirects=False,
    )
    assert response.status_code == 303
    return response


@pytest.fixture
def web(fake_ledger):
    app.dependency_overrides[get_ledger] = lambda: fake_ledger.client()
    # Session cookies are https-only
    with TestClient(app, base_url="https://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_web(web):
    login(web, role="admin")
    return web
