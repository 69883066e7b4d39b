"""REST accessors for the customer account data (CAD) API.

Each call obtains the customer's credential from the CredentialCache (one
SAML exchange per customer per cache lifetime), signs the request with OAuth
1.0a and decodes the JSON answer into resource models.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple, Union

import pydantic
import requests

from cad_client.auth.cache import CredentialCache
from cad_client.auth.oauth1 import OAuth1Auth
from cad_client.models.resources import (
    AccountList,
    Account,
    InstitutionDetails,
    Transaction,
    parse_transaction_list,
)
from cad_client.utils.exceptions import APIError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://financialdatafeed.platform.intuit.com/v1"

TXN_DATE_FORMAT = "%Y-%m-%d"


class CADClient:
    """Client for one customer's data in the CAD API.

    Attributes:
        customer_id: Customer identifier, used as the SAML subject
        cache: Credential cache shared between clients
        consumer_key: OAuth consumer key
        consumer_secret: OAuth consumer secret (HMAC-SHA1 signing key part)
        base_url: API base URL
        session: requests session used for API calls
        timeout: Passed through to every request

    Example:
        >>> client = CADClient("customer-42", cache, "key", "secret")
        >>> for account in client.get_customer_accounts():
        ...     print(account.id, account.balance)
    """

    def __init__(
        self,
        customer_id: str,
        cache: CredentialCache,
        consumer_key: str,
        consumer_secret: str,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[requests.Session] = None,
        timeout: Optional[Union[float, Tuple[float, float]]] = None,
    ) -> None:
        if session is None:
            from cad_client.transport.http_client import create_session

            session = create_session()

        self.customer_id = customer_id
        self.cache = cache
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        credential = self.cache.get_or_create(self.customer_id)
        auth = OAuth1Auth(self.consumer_key, self.consumer_secret, credential)
        url = f"{self.base_url}{path}"

        logger.debug(f"GET {url} for customer={self.customer_id}")
        response = self.session.get(
            url,
            params=params,
            auth=auth,
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )

        if response.status_code != 200:
            if response.status_code == 401:
                # Token revoked or expired server-side; next call re-authenticates
                self.cache.invalidate(self.customer_id)
            logger.error(f"CAD API returned status code {response.status_code} for GET {path}")
            raise APIError(
                f"CAD API returned status code {response.status_code} for GET {path}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise APIError(
                f"CAD API returned invalid JSON for GET {path}: {e}",
                status_code=response.status_code,
            ) from e

        if not isinstance(payload, dict):
            raise APIError(
                f"CAD API returned unexpected payload type {type(payload).__name__} for GET {path}",
                status_code=response.status_code,
            )
        return payload

    def _decode(self, path: str, decode, payload: Dict[str, Any]):
        try:
            return decode(payload)
        except pydantic.ValidationError as e:
            raise APIError(f"Unexpected CAD API payload for GET {path}: {e}") from e

    def get_customer_accounts(self) -> List[Account]:
        """Return all accounts of the customer."""
        path = "/accounts"
        payload = self._get(path)
        return self._decode(path, AccountList.model_validate, payload).accounts

    def get_login_accounts(self, login_id: int) -> List[Account]:
        """Return the accounts linked to one institution login."""
        path = f"/logins/{login_id}/accounts"
        payload = self._get(path)
        return self._decode(path, AccountList.model_validate, payload).accounts

    def get_institution_details(self, institution_id: int) -> InstitutionDetails:
        path = f"/institutions/{institution_id}"
        payload = self._get(path)
        return self._decode(path, InstitutionDetails.model_validate, payload)

    def get_account_transactions(
        self,
        account_id: int,
        start_date: date,
        end_date: Optional[date] = None,
    ) -> Dict[str, List[Transaction]]:
        """Return transactions of an account grouped by transaction kind.

        Args:
            account_id: Account to query
            start_date: First day included (txnStartDate)
            end_date: Last day included (txnEndDate); open-ended when None

        Returns:
            Mapping such as {"bankingTransactions": [...]}
        """
        path = f"/accounts/{account_id}/transactions"
        params = {"txnStartDate": start_date.strftime(TXN_DATE_FORMAT)}
        if end_date is not None:
            params["txnEndDate"] = end_date.strftime(TXN_DATE_FORMAT)

        payload = self._get(path, params=params)
        return self._decode(path, parse_transaction_list, payload)
