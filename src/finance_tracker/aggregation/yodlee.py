"""
Yodlee account-aggregation client.

Thin wrapper over the Yodlee REST API that maps accounts and
transactions onto the domain models. Provider categories are
authoritative, so transactions come back with confidence 1.0 and
are never passed through the categorization engine.
"""
import os
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import httpx

from finance_tracker.categorization.categories import AUTHORITATIVE_CONFIDENCE
from finance_tracker.domain.enums import AccountType
from finance_tracker.domain.models import Account, Transaction, UNCATEGORIZED
from finance_tracker.logger import get_logger

logger = get_logger(__name__)

API_VERSION = "1.1"
FASTLINK_APP_ID = "10003600"
DEFAULT_CURRENCY = "ZAR"

# Tokens are refreshed this many seconds before they actually expire
TOKEN_EXPIRY_MARGIN_SECONDS = 300

# Checked in order against the provider's accountType
ACCOUNT_TYPE_MARKERS = [
    ("CREDIT", AccountType.CREDIT),
    ("INVESTMENT", AccountType.INVESTMENT),
    ("SAVINGS", AccountType.SAVINGS),
    ("LOAN", AccountType.LOAN),
    ("RETIREMENT", AccountType.RETIREMENT),
]


class AggregationError(Exception):
    """Raised when the aggregation provider rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class YodleeConfig:
    api_url: str
    client_id: str
    client_secret: str
    fastlink_url: str = ""

    @property
    def is_sandbox(self) -> bool:
        return "sandbox" in self.api_url

    @classmethod
    def from_env(cls) -> "YodleeConfig":
        """
        Read the configuration from YODLEE_* environment variables.

        Raises:
            ValueError: If a required variable is missing
        """
        values = {
            "api_url": os.getenv("YODLEE_API_URL"),
            "client_id": os.getenv("YODLEE_CLIENT_ID"),
            "client_secret": os.getenv("YODLEE_CLIENT_SECRET"),
        }
        missing = [f"YODLEE_{key.upper()}" for key, value in values.items() if not value]
        if missing:
            raise ValueError(f"Missing Yodlee settings: {', '.join(missing)}")

        return cls(
            fastlink_url=os.getenv("YODLEE_FASTLINK_URL", ""),
            **values,
        )


def map_account_type(provider_type: str) -> AccountType:
    for marker, account_type in ACCOUNT_TYPE_MARKERS:
        if marker in (provider_type or ""):
            return account_type
    return AccountType.CHECKING


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def account_from_response(raw: Dict[str, Any]) -> Account:
    """Map one entry of the /accounts response onto an Account"""
    balance = raw.get("balance") or {}
    return Account(
        id=str(raw["id"]),
        name=raw.get("accountName", ""),
        type=map_account_type(raw.get("accountType", "")),
        balance=Decimal(str(balance.get("amount") or 0)),
        currency=balance.get("currency") or DEFAULT_CURRENCY,
        institution=raw.get("providerName", "Unknown"),
        last_updated=_parse_datetime(raw.get("lastUpdated")),
        account_number=raw.get("accountNumber"),
    )


def transaction_from_response(raw: Dict[str, Any]) -> Transaction:
    """Map one entry of the /transactions response onto a Transaction"""
    magnitude = Decimal(str(raw["amount"]["amount"]))
    amount = magnitude if raw.get("baseType") == "CREDIT" else -magnitude
    merchant = raw.get("merchant") or {}

    return Transaction(
        id=str(raw["id"]),
        account_id=str(raw["accountId"]),
        amount=amount,
        description=(raw.get("description") or {}).get("original", ""),
        date=date.fromisoformat(raw["date"][:10]),
        category=raw.get("category") or UNCATEGORIZED,
        merchant=merchant.get("name"),
        pending=raw.get("status") == "PENDING",
        confidence=AUTHORITATIVE_CONFIDENCE,
        raw_data=raw,
    )


class YodleeClient:
    """
    Synchronous Yodlee API client with access token caching.

    Usage:
        client = YodleeClient(YodleeConfig.from_env())
        accounts = client.get_accounts("sbMem123")
        transactions = client.get_transactions("sbMem123", date(2025, 1, 1), date(2025, 1, 31))
    """

    def __init__(
        self,
        config: YodleeConfig,
        client: Optional[httpx.Client] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config
        self._client = client or httpx.Client(timeout=30.0)
        self._clock = clock
        self._access_token: Optional[str] = None
        self._token_expiry: Optional[datetime] = None

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "YodleeClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _url(self, path: str) -> str:
        return f"{self.config.api_url.rstrip('/')}{path}"

    def _check(self, response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        logger.error("Yodlee %s failed: %s %s", action, response.status_code, response.text)
        raise AggregationError(
            f"Failed to {action}: {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
        )

    def _headers(self, login_name: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Api-Version": API_VERSION,
            "Authorization": f"Bearer {self.get_access_token()}",
        }
        if login_name:
            headers["loginName"] = login_name
        return headers

    def get_access_token(self) -> str:
        """Return the cached access token, fetching a new one when expired"""
        if (
            self._access_token
            and self._token_expiry
            and self._clock() < self._token_expiry
        ):
            return self._access_token

        response = self._client.post(
            self._url("/auth/token"),
            headers={"Api-Version": API_VERSION},
            data={
                "clientId": self.config.client_id,
                "secret": self.config.client_secret,
            },
        )
        self._check(response, "get token")

        token = response.json()["token"]
        self._access_token = token["accessToken"]
        lifetime = int(token["expiresIn"]) - TOKEN_EXPIRY_MARGIN_SECONDS
        self._token_expiry = self._clock() + timedelta(seconds=lifetime)

        logger.debug("Fetched Yodlee access token, valid for %ds", lifetime)
        return self._access_token

    def register_user(self, login_name: str, email: Optional[str] = None) -> Dict[str, Any]:
        user: Dict[str, Any] = {"loginName": login_name}
        if email:
            user["email"] = email

        response = self._client.post(
            self._url("/user/register"),
            headers=self._headers(),
            json={"user": user},
        )
        self._check(response, "register user")
        return response.json()

    def get_user(self, login_name: str) -> Dict[str, Any]:
        response = self._client.get(
            self._url("/user"),
            headers=self._headers(),
            params={"loginName": login_name},
        )
        self._check(response, "get user")
        return response.json()

    def ensure_user(self, login_name: str, email: Optional[str] = None) -> Dict[str, Any]:
        """Return the provider user, registering it on first use"""
        try:
            return self.get_user(login_name)
        except AggregationError as e:
            if e.status_code not in (400, 404):
                raise
        logger.info("Registering Yodlee user %s", login_name)
        return self.register_user(login_name, email=email)

    def get_fastlink_token(self, login_name: str) -> str:
        """
        Token used to launch FastLink for a user.

        The sandbox accepts the client access token directly.
        """
        token = self.get_access_token()
        if self.config.is_sandbox:
            return token

        response = self._client.post(
            self._url("/user/accessTokens"),
            headers=self._headers(login_name),
            params={"appIds": FASTLINK_APP_ID},
        )
        self._check(response, "get FastLink token")

        try:
            return response.json()["user"]["accessTokens"][0]["value"]
        except (KeyError, IndexError, TypeError) as e:
            raise AggregationError("Invalid FastLink token response format") from e

    def get_accounts(self, login_name: str) -> List[Account]:
        response = self._client.get(
            self._url("/accounts"),
            headers=self._headers(login_name),
        )
        self._check(response, "get accounts")
        return [account_from_response(raw) for raw in response.json().get("account", [])]

    def get_transactions(
        self,
        login_name: str,
        from_date: date,
        to_date: date,
    ) -> List[Transaction]:
        response = self._client.get(
            self._url("/transactions"),
            headers=self._headers(login_name),
            params={
                "fromDate": from_date.isoformat(),
                "toDate": to_date.isoformat(),
            },
        )
        self._check(response, "get transactions")
        return [
            transaction_from_response(raw)
            for raw in response.json().get("transaction", [])
        ]

    def generate_fastlink_config(
        self,
        login_name: str,
        access_token: str,
        container_id: str,
        flow: str = "Aggregation",
    ) -> Dict[str, Any]:
        """Configuration for embedding the FastLink widget"""
        return {
            "fastLinkURL": self.config.fastlink_url,
            "token": {
                "tokenType": "AccessToken",
                "value": access_token,
            },
            "config": {
                "flow": flow,
                "iframeTarget": container_id,
                "providerSearchInput": True,
                "base64ImageSrc": True,
                "siteSearchProviderIds": "16441,16442,16443,16444,16445",
            },
            "user": {
                "loginName": login_name,
            },
        }
