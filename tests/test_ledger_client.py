"""
Tests for the Ledger API client: headers, query strings, envelope
unwrapping and how failures are turned into user-facing messages.
"""
import json

import httpx
import pytest

from ledger_client import LedgerAPIError, LedgerClient, clean_token, error_message
from models import InvestorStatus, JournalEntryStatus
from schemas import CreateFiscalPeriod, TotalInvestment

from conftest import BASE_URL, envelope


def client_with(handler, token="abc") -> LedgerClient:
    return LedgerClient(BASE_URL, token=token, transport=httpx.MockTransport(handler))


class TestHeaders:

    @pytest.mark.parametrize("raw, expected", [
        ("abc", "abc"),
        ("  abc  ", "abc"),
        ("Bearer abc", "abc"),
        ("bearer   abc", "abc"),
        ("", None),
        (None, None),
        ("Bearer ", None),
    ])
    def test_clean_token(self, raw, expected):
        assert clean_token(raw) == expected

    def test_bearer_header_sent(self):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200, json=envelope([]))

        with client_with(handler, token="Bearer xyz") as client:
            client.accounts.all()

        assert seen["authorization"] == "Bearer xyz"
        assert seen["accept"] == "application/json"

    def test_no_token_no_header(self):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200, json=envelope([]))

        with client_with(handler, token=None) as client:
            client.fiscal_periods.all()

        assert "authorization" not in seen


class TestRequests:

    def test_list_drops_empty_filters(self):
        urls = []

        def handler(request):
            urls.append(request.url)
            return httpx.Response(200, json=envelope({"page": 2, "limit": 5, "total_results": 0,
                                                      "total_pages": 1, "results": []}))

        with client_with(handler) as client:
            client.journal_entries.list(page=2, limit=5, search="", status="draft", fiscal_period_id=None)

        assert urls[0].path == "/api/v1/journal-entries"
        assert dict(urls[0].params) == {"page": "2", "limit": "5", "status": "draft"}

    def test_page_is_parsed_into_models(self, ledger, fake_ledger):
        fake_ledger.add_entry(status="approved")

        page = ledger.journal_entries.list()

        assert page.total_results == 1
        assert page.results[0].status is JournalEntryStatus.APPROVED
        assert page.results[0].lines[0].debit == 250000

    def test_action_posts_empty_body(self):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(200, json=envelope({
                "id": 5, "entry_number": "JE-2025-0005", "entry_date": "2025-01-15",
                "fiscal_period_id": 1, "status": "approved",
            }))

        with client_with(handler) as client:
            entry = client.journal_entries.approve(5)

        assert captured[0].method == "POST"
        assert captured[0].url.path == "/api/v1/journal-entries/5/approve"
        assert json.loads(captured[0].content) == {}
        assert entry.status is JournalEntryStatus.APPROVED

    def test_create_omits_unset_optionals(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json=envelope({"id": 1, **bodies[-1]}))

        with client_with(handler) as client:
            client.expense_categories.create({"category_name": "Packaging"})
            client.fiscal_periods.create(CreateFiscalPeriod(
                period_name="Feb 2025", period_start="2025-02-01", period_end="2025-02-28",
            ))

        assert bodies[0] == {"category_name": "Packaging"}
        assert bodies[1] == {"period_name": "Feb 2025", "period_start": "2025-02-01", "period_end": "2025-02-28"}

    def test_unwrapped_body_passes_through(self):
        def handler(request):
            return httpx.Response(200, json=[{"id": 1, "category_name": "Packaging"}])

        with client_with(handler) as client:
            categories = client.expense_categories.all()

        assert categories[0].category_name == "Packaging"

    def test_ad_budget_spent_is_patched(self):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(200, json=envelope({
                "id": 3, "platform": "meta_ads", "month_year": "2025-01-01",
                "budget_amount": 5000000, "spent_amount": 2000000,
            }))

        with client_with(handler) as client:
            budget = client.ad_budgets.update_spent(3, 2000000)

        assert captured[0].method == "PATCH"
        assert captured[0].url.path == "/api/v1/ad-budgets/3/spent"
        assert json.loads(captured[0].content) == {"spent_amount": 2000000}
        assert budget.remaining == 3000000

    def test_investor_status_is_patched(self, ledger, fake_ledger):
        investor = fake_ledger.add_investor()

        updated = ledger.capital_investors.update_status(investor["id"], InvestorStatus.FULLY_PAID)

        assert json.loads(fake_ledger.writes("PATCH")[0].content) == {"status": "fully_paid"}
        assert updated.status is InvestorStatus.FULLY_PAID

    def test_ad_budgets_by_month(self, ledger, fake_ledger):
        fake_ledger.add_ad_budget()
        fake_ledger.add_ad_budget(month_year="2025-02-01")

        budgets = ledger.ad_budgets.by_month("2025-01-01")

        assert fake_ledger.requests[-1].url.path == "/api/v1/ad-budgets/month/2025-01-01"
        assert [b.month_year for b in budgets] == ["2025-01-01"]


class TestTotalInvestment:

    def test_plain_number(self):
        total = TotalInvestment.from_api(150000000)
        assert total.total_amount == total.total_remaining == 150000000
        assert total.total_return_paid == 0

    def test_breakdown_without_remaining(self):
        total = TotalInvestment.from_api({"total_amount": 100, "total_return_paid": 30})
        assert total.total_remaining == 70

    def test_unexpected_shape(self):
        assert TotalInvestment.from_api(None).total_amount == 0

    def test_fetched_from_api(self, ledger, fake_ledger):
        fake_ledger.add_investor()

        total = ledger.capital_investors.total()

        assert total.total_remaining == 90000000


class TestErrors:

    @pytest.mark.parametrize("status, body, message", [
        (500, {"message": "db down"},
         "Server error: db down. Please try again later or contact admin if the problem persists."),
        (502, {},
         "Server error: Something went wrong on our end. Please try again later or contact admin if the problem persists."),
        (404, {"message": "Journal entry 9 not found"}, "Resource not found: Journal entry 9 not found"),
        (404, {}, "Resource not found: The requested item does not exist"),
        (401, {"message": "token expired"}, "Unauthorized. Please login again."),
        (403, {}, "Access denied. You do not have permission to perform this action."),
        (400, {"message": "Fiscal period is closed"}, "Invalid request: Fiscal period is closed"),
        (400, {}, "Invalid request: Please check your input"),
        (409, {"message": "Already posted"}, "Already posted"),
        (422, {}, "HTTP error! status: 422"),
    ])
    def test_error_message(self, status, body, message):
        assert error_message(status, body) == message

    def test_error_response_raises(self):
        def handler(request):
            return httpx.Response(400, json={"status": "error", "code": 400, "message": "Unbalanced on recheck"})

        with client_with(handler) as client:
            with pytest.raises(LedgerAPIError) as exc_info:
                client.journal_entries.post(3)

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Invalid request: Unbalanced on recheck"
        assert exc_info.value.data["message"] == "Unbalanced on recheck"

    def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(503, text="<html>Bad gateway</html>")

        with client_with(handler) as client:
            with pytest.raises(LedgerAPIError) as exc_info:
                client.accounts.get(1)

        assert exc_info.value.status_code == 503
        assert "Something went wrong on our end" in exc_info.value.message

    def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with client_with(handler) as client:
            with pytest.raises(LedgerAPIError) as exc_info:
                client.fiscal_periods.all()

        assert exc_info.value.status_code == 0
        assert "connection refused" in exc_info.value.message
