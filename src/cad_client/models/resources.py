"""CAD API resource payload models.

These pydantic models decode the JSON bodies returned by the customer account
data API. Field aliases map the remote camelCase keys; timestamps arrive as
Unix milliseconds and are converted to timezone-aware UTC datetimes.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

ACCOUNT_STATUS_ACTIVE = "ACTIVE"
ACCOUNT_STATUS_INACTIVE = "INACTIVE"

# Aggregation status codes reported in Account.aggr_status_code
AGGR_STATUS_OK = "0"
AGGR_STATUS_UNKNOWN = "100"
AGGR_STATUS_GENERAL_ERROR = "101"
AGGR_STATUS_AGGR_ERROR = "102"
AGGR_STATUS_LOGIN_ERROR = "103"
AGGR_STATUS_JSON_PARSING_ERROR = "104"
AGGR_STATUS_UNAVAILABLE = "105"
AGGR_STATUS_ACCOUNT_MISMATCH = "106"
AGGR_STATUS_END_USER_ACTION_REQUIRED = "108"
AGGR_STATUS_PASSWORD_CHANGE_REQUIRED = "109"
AGGR_STATUS_FINANCIAL_INSTITUTION_ERROR = "155"
AGGR_STATUS_APPLICATION_ERROR = "163"
AGGR_STATUS_MULTIPLE_LOGINS = "179"
AGGR_STATUS_MFA_REQUIRED = "185"
AGGR_STATUS_INCORRECT_MFA_ANSWER = "187"
AGGR_STATUS_INVALID_PERSONAL_ACCESS_CODE = "199"
AGGR_STATUS_DUPLICATE_ACCOUNT = "323"
AGGR_STATUS_ACCOUNT_NUMBER_CHANGED = "324"


def millis_to_datetime(value: Any) -> Any:
    """Convert a Unix millisecond timestamp to a UTC datetime.

    Non-numeric values are passed through so pydantic can validate them.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(int(value) // 1000, tz=timezone.utc)
    if isinstance(value, str) and value.lstrip("-").isdigit():
        return datetime.fromtimestamp(int(value) // 1000, tz=timezone.utc)
    return value


MillisDatetime = Annotated[Optional[datetime], BeforeValidator(millis_to_datetime)]


class _Resource(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Account(_Resource):
    """An account at a financial institution."""

    id: int = Field(alias="accountId")
    login_id: Optional[int] = Field(default=None, alias="institutionLoginId")
    name: str = Field(default="", alias="accountNickname")
    balance: float = Field(default=0.0, alias="balanceAmount")
    balance_date: MillisDatetime = Field(default=None, alias="balanceDate")
    status: str = Field(default="")
    aggr_success_date: MillisDatetime = Field(default=None, alias="aggrSuccessDate")
    aggr_attempt_date: MillisDatetime = Field(default=None, alias="aggrAttemptDate")
    aggr_status_code: str = Field(default="", alias="aggrStatusCode")
    currency: str = Field(default="", alias="currencyCode")
    institution_id: Optional[int] = Field(default=None, alias="institutionId")

    @field_validator("aggr_status_code", mode="before")
    @classmethod
    def status_code_as_str(cls, v: Any) -> Any:
        if isinstance(v, int):
            return str(v)
        return v

    @property
    def is_active(self) -> bool:
        return self.status == ACCOUNT_STATUS_ACTIVE


class AccountList(_Resource):
    accounts: List[Account] = Field(default_factory=list)


class InstitutionKey(_Resource):
    """Login field definition for a financial institution."""

    name: str = ""
    value: str = Field(default="", alias="val")
    status: str = ""
    min_length: int = Field(default=0, alias="valueLengthMin")
    max_length: int = Field(default=0, alias="valueLengthMax")
    display_to_user: bool = Field(default=False, alias="displayFlag")
    display_order: int = Field(default=0, alias="displayOrder")
    mask_value: bool = Field(default=False, alias="mask")
    instructions: str = ""
    description: str = ""


class InstitutionAddress(_Resource):
    address_line1: str = Field(default="", alias="address1")
    address_line2: str = Field(default="", alias="address2")
    address_line3: str = Field(default="", alias="address3")
    city: str = ""
    state: str = ""
    postal_code: str = Field(default="", alias="postalCode")
    country: str = ""


class InstitutionDetails(_Resource):
    """Details and login keys of a financial institution."""

    id: int = Field(alias="institutionId")
    name: str = Field(default="", alias="institutionName")
    home_url: str = Field(default="", alias="homeUrl")
    phone_number: str = Field(default="", alias="phoneNumber")
    email_address: str = Field(default="", alias="emailAddress")
    special_text: str = Field(default="", alias="specialText")
    currency_code: str = Field(default="", alias="currencyCode")
    virtual: bool = False
    address: InstitutionAddress = Field(default_factory=InstitutionAddress)
    keys: List[InstitutionKey] = Field(default_factory=list)

    @field_validator("keys", mode="before")
    @classmethod
    def unwrap_keys(cls, v: Any) -> Any:
        # The API nests the list as {"key": [...]}
        if isinstance(v, dict):
            return v.get("key") or v.get("Key") or []
        return v


class TransactionContext(_Resource):
    source: str = ""
    category_name: str = Field(default="", alias="categoryName")
    schedule_c: str = Field(default="", alias="scheduleC")


class TransactionCategorization(_Resource):
    normalized_payee_name: str = ""
    context: List[TransactionContext] = Field(default_factory=list)

    @field_validator("normalized_payee_name", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return v or ""

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TransactionCategorization":
        common = payload.get("common") or {}
        return cls(
            normalized_payee_name=common.get("normalizedPayeeName", ""),
            context=payload.get("context") or [],
        )


class Transaction(_Resource):
    """A single transaction in a financial institution account."""

    id: int
    institution_transaction_id: str = Field(default="", alias="institutionTransactionId")
    user_date: MillisDatetime = Field(default=None, alias="userDate")
    posted_date: MillisDatetime = Field(default=None, alias="postedDate")
    currency_type: str = Field(default="", alias="currencyType")
    payee_name: str = Field(default="", alias="payeeName")
    amount: float = 0.0
    pending: bool = False
    categorization: TransactionCategorization = Field(
        default_factory=TransactionCategorization
    )

    @field_validator("categorization", mode="before")
    @classmethod
    def flatten_categorization(cls, v: Any) -> Any:
        if isinstance(v, dict) and "common" in v:
            return TransactionCategorization.from_payload(v)
        return v


def parse_transaction_list(payload: Dict[str, Any]) -> Dict[str, List[Transaction]]:
    """Decode a transactions payload into {kind: [Transaction, ...]}.

    Only top-level keys ending in "Transactions" (e.g. "bankingTransactions",
    "creditCardTransactions") are kept; other keys such as "notRefreshedReason"
    are ignored.

    Args:
        payload: Decoded JSON object

    Returns:
        Mapping of transaction kind to decoded transactions
    """
    result: Dict[str, List[Transaction]] = {}
    for key, raw in payload.items():
        if not key.endswith("Transactions"):
            continue
        result[key] = [Transaction.model_validate(item) for item in raw or []]
    return result
