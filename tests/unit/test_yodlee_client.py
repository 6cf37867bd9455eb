import json
import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal

import httpx

from finance_tracker.aggregation.yodlee import (
    AggregationError,
    YodleeClient,
    YodleeConfig,
    account_from_response,
    map_account_type,
    transaction_from_response,
)
from finance_tracker.domain.enums import AccountType

SANDBOX_URL = "https://sandbox.api.yodlee.com/ysl"
PRODUCTION_URL = "https://production.api.yodlee.com/ysl"

TOKEN_RESPONSE = {"token": {"accessToken": "token-123", "expiresIn": 1800, "issuedAt": "2025-05-27T10:00:00Z"}}

RAW_TRANSACTION = {
    "id": 98765,
    "accountId": 12345,
    "amount": {"amount": 1247.5, "currency": "ZAR"},
    "baseType": "DEBIT",
    "category": "Groceries",
    "description": {"original": "WOOLWORTHS SANDTON"},
    "date": "2025-05-27",
    "merchant": {"name": "Woolworths"},
    "status": "POSTED",
}

RAW_ACCOUNT = {
    "id": 12345,
    "accountName": "Cheque Account",
    "accountType": "CHECKING",
    "balance": {"amount": 15230.55, "currency": "ZAR"},
    "providerName": "Dag Site",
    "lastUpdated": "2025-05-27T08:30:00Z",
    "accountNumber": "xxxx1234",
}


class FakeClock:

    def __init__(self):
        self.now = datetime(2025, 5, 27, 10, 0, 0)

    def __call__(self) -> datetime:
        return self.now


class YodleeStub:
    """Records requests and answers them from a route table"""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"errorMessage": "not found"})
        status, body = handler
        return httpx.Response(status, json=body)

    def paths(self):
        return [request.url.path for request in self.requests]


def make_client(routes, api_url=SANDBOX_URL, clock=None):
    stub = YodleeStub(routes)
    config = YodleeConfig(
        api_url=api_url,
        client_id="client-id",
        client_secret="client-secret",
        fastlink_url="https://fl4.sandbox.yodlee.com/authenticate/restserver/fastlink",
    )
    client = YodleeClient(
        config,
        client=httpx.Client(transport=httpx.MockTransport(stub)),
        clock=clock or FakeClock(),
    )
    return client, stub


@pytest.mark.unit
class TestYodleeMapping:

    def test_debit_transaction_is_negative(self):
        txn = transaction_from_response(RAW_TRANSACTION)

        assert txn.id == "98765"
        assert txn.account_id == "12345"
        assert txn.amount == Decimal("-1247.5")
        assert txn.date == date(2025, 5, 27)
        assert txn.description == "WOOLWORTHS SANDTON"
        assert txn.merchant == "Woolworths"
        assert txn.pending is False

    def test_provider_category_is_authoritative(self):
        txn = transaction_from_response(RAW_TRANSACTION)

        assert txn.category == "Groceries"
        assert txn.confidence == 1.0

    def test_credit_pending_transaction(self):
        raw = dict(RAW_TRANSACTION, baseType="CREDIT", status="PENDING", category=None, merchant=None)

        txn = transaction_from_response(raw)

        assert txn.amount == Decimal("1247.5")
        assert txn.pending is True
        assert txn.category == "Uncategorized"
        assert txn.merchant is None

    def test_account_mapping(self):
        account = account_from_response(RAW_ACCOUNT)

        assert account.id == "12345"
        assert account.type == AccountType.CHECKING
        assert account.balance == Decimal("15230.55")
        assert account.currency == "ZAR"
        assert account.institution == "Dag Site"
        assert account.last_updated.year == 2025

    def test_account_without_balance(self):
        account = account_from_response({"id": 1, "accountType": "SAVINGS"})

        assert account.balance == Decimal("0")
        assert account.currency == "ZAR"
        assert account.last_updated is None

    @pytest.mark.parametrize("provider_type,expected", [
        ("CREDIT", AccountType.CREDIT),
        ("INVESTMENT", AccountType.INVESTMENT),
        ("SAVINGS", AccountType.SAVINGS),
        ("PERSONAL_LOAN", AccountType.LOAN),
        ("RETIREMENT", AccountType.RETIREMENT),
        ("CHECKING", AccountType.CHECKING),
        ("", AccountType.CHECKING),
    ])
    def test_account_types(self, provider_type, expected):
        assert map_account_type(provider_type) == expected


@pytest.mark.unit
class TestYodleeConfig:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("YODLEE_API_URL", SANDBOX_URL)
        monkeypatch.setenv("YODLEE_CLIENT_ID", "id")
        monkeypatch.setenv("YODLEE_CLIENT_SECRET", "secret")
        monkeypatch.delenv("YODLEE_FASTLINK_URL", raising=False)

        config = YodleeConfig.from_env()

        assert config.api_url == SANDBOX_URL
        assert config.fastlink_url == ""
        assert config.is_sandbox is True

    def test_from_env_missing_values(self, monkeypatch):
        monkeypatch.setenv("YODLEE_API_URL", PRODUCTION_URL)
        monkeypatch.delenv("YODLEE_CLIENT_ID", raising=False)
        monkeypatch.delenv("YODLEE_CLIENT_SECRET", raising=False)

        with pytest.raises(ValueError, match="YODLEE_CLIENT_ID, YODLEE_CLIENT_SECRET"):
            YodleeConfig.from_env()


@pytest.mark.unit
class TestYodleeClient:

    def test_access_token_is_cached(self):
        client, stub = make_client({("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE)})

        assert client.get_access_token() == "token-123"
        assert client.get_access_token() == "token-123"

        assert stub.paths() == ["/ysl/auth/token"]

    def test_token_request_sends_credentials(self):
        client, stub = make_client({("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE)})

        client.get_access_token()

        request = stub.requests[0]
        assert request.headers["Api-Version"] == "1.1"
        assert b"clientId=client-id" in request.content
        assert b"secret=client-secret" in request.content

    def test_access_token_refreshed_before_expiry(self):
        clock = FakeClock()
        client, stub = make_client({("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE)}, clock=clock)

        client.get_access_token()
        clock.now += timedelta(seconds=1499)
        client.get_access_token()
        clock.now += timedelta(seconds=2)
        client.get_access_token()

        assert stub.paths() == ["/ysl/auth/token", "/ysl/auth/token"]

    def test_failed_token_request(self):
        client, _ = make_client({("POST", "/ysl/auth/token"): (401, {"errorMessage": "bad secret"})})

        with pytest.raises(AggregationError) as exc_info:
            client.get_access_token()

        assert exc_info.value.status_code == 401

    def test_get_transactions(self):
        client, stub = make_client({
            ("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE),
            ("GET", "/ysl/transactions"): (200, {"transaction": [RAW_TRANSACTION]}),
        })

        transactions = client.get_transactions("sbMem123", date(2025, 5, 1), date(2025, 5, 31))

        assert [t.description for t in transactions] == ["WOOLWORTHS SANDTON"]
        request = stub.requests[-1]
        assert request.url.params["fromDate"] == "2025-05-01"
        assert request.url.params["toDate"] == "2025-05-31"
        assert request.headers["loginName"] == "sbMem123"
        assert request.headers["Authorization"] == "Bearer token-123"

    def test_get_transactions_empty_response(self):
        client, _ = make_client({
            ("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE),
            ("GET", "/ysl/transactions"): (200, {}),
        })

        assert client.get_transactions("sbMem123", date(2025, 5, 1), date(2025, 5, 31)) == []

    def test_get_accounts(self):
        client, _ = make_client({
            ("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE),
            ("GET", "/ysl/accounts"): (200, {"account": [RAW_ACCOUNT]}),
        })

        [account] = client.get_accounts("sbMem123")

        assert account.name == "Cheque Account"

    def test_get_accounts_failure(self):
        client, _ = make_client({
            ("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE),
            ("GET", "/ysl/accounts"): (500, {"errorMessage": "boom"}),
        })

        with pytest.raises(AggregationError, match="get accounts"):
            client.get_accounts("sbMem123")

    def test_register_user(self):
        client, stub = make_client({
            ("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE),
            ("POST", "/ysl/user/register"): (200, {"user": {"id": 1, "loginName": "sbMem123"}}),
        })

        result = client.register_user("sbMem123", email="user@example.com")

        assert result["user"]["loginName"] == "sbMem123"
        body = json.loads(stub.requests[-1].content)
        assert body == {"user": {"loginName": "sbMem123", "email": "user@example.com"}}

    def test_sandbox_fastlink_token_is_access_token(self):
        client, stub = make_client({("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE)})

        assert client.get_fastlink_token("sbMem123") == "token-123"
        assert stub.paths() == ["/ysl/auth/token"]

    def test_production_fastlink_token(self):
        client, stub = make_client(
            {
                ("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE),
                ("POST", "/ysl/user/accessTokens"): (
                    200,
                    {"user": {"accessTokens": [{"appId": "10003600", "value": "fastlink-token"}]}},
                ),
            },
            api_url=PRODUCTION_URL,
        )

        assert client.get_fastlink_token("member1") == "fastlink-token"
        assert stub.requests[-1].url.params["appIds"] == "10003600"

    def test_production_fastlink_token_bad_response(self):
        client, _ = make_client(
            {
                ("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE),
                ("POST", "/ysl/user/accessTokens"): (200, {"user": {"accessTokens": []}}),
            },
            api_url=PRODUCTION_URL,
        )

        with pytest.raises(AggregationError, match="Invalid FastLink token"):
            client.get_fastlink_token("member1")

    def test_generate_fastlink_config(self):
        client, _ = make_client({})

        config = client.generate_fastlink_config("sbMem123", "token-123", "container-fastlink")

        assert config["fastLinkURL"].endswith("/fastlink")
        assert config["token"] == {"tokenType": "AccessToken", "value": "token-123"}
        assert config["config"]["flow"] == "Aggregation"
        assert config["config"]["iframeTarget"] == "container-fastlink"
        assert config["user"] == {"loginName": "sbMem123"}

    def test_context_manager_closes_http_client(self):
        client, _ = make_client({})

        with client:
            pass

        assert client._client.is_closed


@pytest.mark.unit
class TestYodleeUsers:

    def test_null_description_maps_to_empty_string(self):
        txn = transaction_from_response(dict(RAW_TRANSACTION, description=None))

        assert txn.description == ""

    def test_get_user(self):
        client, stub = make_client({
            ("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE),
            ("GET", "/ysl/user"): (200, {"user": {"id": 7, "loginName": "sbMem123"}}),
        })

        result = client.get_user("sbMem123")

        assert result["user"]["id"] == 7
        assert stub.requests[-1].url.params["loginName"] == "sbMem123"

    def test_ensure_user_returns_existing_user(self):
        client, stub = make_client({
            ("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE),
            ("GET", "/ysl/user"): (200, {"user": {"id": 7, "loginName": "sbMem123"}}),
        })

        assert client.ensure_user("sbMem123")["user"]["id"] == 7
        assert "/ysl/user/register" not in stub.paths()

    def test_ensure_user_registers_unknown_user(self):
        client, stub = make_client({
            ("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE),
            ("POST", "/ysl/user/register"): (200, {"user": {"id": 8, "loginName": "newMember"}}),
        })

        result = client.ensure_user("newMember", email="new@example.com")

        assert result["user"]["id"] == 8
        assert stub.paths()[-2:] == ["/ysl/user", "/ysl/user/register"]

    def test_ensure_user_propagates_server_errors(self):
        client, stub = make_client({
            ("POST", "/ysl/auth/token"): (200, TOKEN_RESPONSE),
            ("GET", "/ysl/user"): (500, {"errorMessage": "boom"}),
        })

        with pytest.raises(AggregationError) as exc_info:
            client.ensure_user("sbMem123")

        assert exc_info.value.status_code == 500
        assert "/ysl/user/register" not in stub.paths()
