"""Map upstream deposit/withdrawal records into canonical transactions."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from walletsync.exceptions import TransformError
from walletsync.logging_config import get_logger
from walletsync.services.types import JobType, TransactionRecord


logger = get_logger("transformer")

DEPOSIT_STATUS_SUCCESS = 1
INTERNAL_TRANSFER = 0
SPOT_ACCOUNT = "Spot"
FUNDING_ACCOUNT = "Funding"
REMARK_SEPARATOR = ", "

# Upstream fields kept verbatim in the raw payload
DEPOSIT_RAW_FIELDS = (
    "network",
    "addressTag",
    "txId",
    "transferType",
    "unlockConfirm",
    "confirmTimes",
)
WITHDRAW_RAW_FIELDS = (
    "id",
    "transactionFee",
    "status",
    "addressTag",
    "txId",
    "network",
    "transferType",
    "info",
    "confirmNo",
    "walletType",
    "txKey",
)


@dataclass(frozen=True, slots=True)
class TransformFailure:
    """A record that could not be mapped, by position in its page."""

    index: int
    reason: str


@dataclass(frozen=True, slots=True)
class TransformOutcome:
    """Successes and per-record failures for one page."""

    successes: list[TransactionRecord] = field(default_factory=list)
    failures: list[TransformFailure] = field(default_factory=list)


def parse_timestamp(value: Any) -> int | None:
    """
    Read an upstream timestamp as epoch milliseconds.

    Accepts epoch milliseconds (int, numeric string or Decimal) and
    ``"YYYY-MM-DD HH:MM:SS"`` strings, which the upstream writes in UTC.
    Returns None when the value is absent or unreadable.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, Decimal)):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return int(text)
        try:
            moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return int(moment.timestamp() * 1000)
    return None


def record_timestamp(raw: dict[str, Any], job_type: JobType) -> int | None:
    """Timestamp the upstream orders records by, or None if unreadable."""
    if job_type is JobType.DEPOSIT:
        return parse_timestamp(raw.get("insertTime"))
    return parse_timestamp(raw.get("completeTime")) or parse_timestamp(
        raw.get("applyTime")
    )


def compose_remark(
    address: Any = None, tx_id: Any = None, fee: Any = None
) -> str | None:
    """Join the human readable fields that are present, or None if none are."""
    parts = []
    if address:
        parts.append(f"Address: {address}")
    if tx_id:
        parts.append(f"TxID: {tx_id}")
    if fee:
        parts.append(f"Fee: {fee}")
    return REMARK_SEPARATOR.join(parts) if parts else None


def account_for(transfer_type: Any) -> str:
    """Internal transfers land in Spot, everything else in Funding."""
    return SPOT_ACCOUNT if transfer_type == INTERNAL_TRANSFER else FUNDING_ACCOUNT


def _require(raw: dict[str, Any], name: str) -> Any:
    value = raw.get(name)
    if value is None or value == "":
        raise TransformError(f"Missing required field: {name}")
    return value


def _amount_text(raw: dict[str, Any]) -> str:
    """The amount as an exact decimal string, validated but never coerced."""
    value = _require(raw, "amount")
    text = str(value).strip()
    try:
        Decimal(text)
    except InvalidOperation:
        raise TransformError(f"Invalid amount: {value!r}")
    if not Decimal(text).is_finite():
        raise TransformError(f"Invalid amount: {value!r}")
    if isinstance(value, (Decimal, int, float)):
        # JSON numbers arrive as Decimal; str() would use exponent notation
        return format(Decimal(text), "f")
    return text


def _negate(amount: str) -> str:
    if amount.startswith("-"):
        return amount
    return f"-{amount.lstrip('+')}"


class RecordTransformer:
    """Maps raw upstream records into ``TransactionRecord``."""

    def transform(
        self,
        raw: dict[str, Any],
        job_type: JobType,
        external_user_id: str,
        app_user_id: str | None = None,
    ) -> TransactionRecord:
        """
        Map one upstream record.

        Raises:
            TransformError: When a required field is missing or the record
                violates a business rule (e.g. a deposit that did not succeed).
        """
        if not isinstance(raw, dict):
            raise TransformError(f"Expected an object, got {type(raw).__name__}")
        if job_type is JobType.DEPOSIT:
            return self._transform_deposit(raw, external_user_id, app_user_id)
        return self._transform_withdrawal(raw, external_user_id, app_user_id)

    def transform_page(
        self,
        records: Iterable[dict[str, Any]],
        job_type: JobType,
        external_user_id: str,
        app_user_id: str | None = None,
    ) -> TransformOutcome:
        """Transform every record of a page, collecting failures instead of raising."""
        outcome = TransformOutcome()
        for index, raw in enumerate(records):
            try:
                outcome.successes.append(
                    self.transform(raw, job_type, external_user_id, app_user_id)
                )
            except TransformError as e:
                logger.warning(
                    "Failed to transform %s record %d: %s", job_type.value, index, e
                )
                outcome.failures.append(TransformFailure(index=index, reason=str(e)))
        return outcome

    def _transform_deposit(
        self,
        raw: dict[str, Any],
        external_user_id: str,
        app_user_id: str | None,
    ) -> TransactionRecord:
        status = _require(raw, "status")
        if status != DEPOSIT_STATUS_SUCCESS:
            raise TransformError(f"Deposit has non-success status: {status}")

        amount = _amount_text(raw)
        coin = _require(raw, "coin")
        occurred_at = record_timestamp(raw, JobType.DEPOSIT)
        if occurred_at is None:
            raise TransformError("Missing required field: insertTime")

        return TransactionRecord(
            app_user_id=app_user_id,
            external_user_id=external_user_id,
            occurred_at=occurred_at,
            account=account_for(raw.get("transferType")),
            operation=JobType.DEPOSIT.value,
            asset=coin,
            change_amount=amount,
            remark=compose_remark(raw.get("address"), raw.get("txId")),
            raw_payload={name: raw.get(name) for name in DEPOSIT_RAW_FIELDS},
        )

    def _transform_withdrawal(
        self,
        raw: dict[str, Any],
        external_user_id: str,
        app_user_id: str | None,
    ) -> TransactionRecord:
        amount = _amount_text(raw)
        coin = _require(raw, "coin")
        occurred_at = record_timestamp(raw, JobType.WITHDRAW)
        if occurred_at is None:
            raise TransformError("Missing required field: completeTime or applyTime")

        return TransactionRecord(
            app_user_id=app_user_id,
            external_user_id=external_user_id,
            occurred_at=occurred_at,
            account=account_for(raw.get("transferType")),
            operation=JobType.WITHDRAW.value,
            asset=coin,
            change_amount=_negate(amount),
            remark=compose_remark(
                raw.get("address"), raw.get("txId"), raw.get("transactionFee")
            ),
            raw_payload={name: raw.get(name) for name in WITHDRAW_RAW_FIELDS},
        )
