from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

import httpx
from web3.exceptions import ContractLogicError

_SLIPPAGE_MARKERS = (
    "slippage",
    "too little received",
    "amountoutmin",
    "amount out min",
    "min amount",
    "insufficient output",
    "stargate: slippage too high",
)
_GAS_FUNDS_MARKERS = ("insufficient funds", "gas required exceeds allowance")


class BridgeError(Exception):
    """Base class of every classified failure crossing a public boundary."""
    kind: str = "bridge_error"
    retryable: bool = False

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        plain: Dict[str, Any] = {"kind": self.kind, "message": self.message, "retryable": self.retryable}
        for key, value in self.details.items():
            plain[key] = str(value) if isinstance(value, Decimal) else value
        return plain


class InvalidRequest(BridgeError):
    kind = "invalid_request"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)


class UnsupportedChain(BridgeError):
    kind = "unsupported_chain"

    def __init__(self, chain: str, provider: Optional[str] = None, reason: str = "") -> None:
        where = f" for {provider}" if provider else ""
        super().__init__(f"Chain '{chain}' is not supported{where}{': ' + reason if reason else ''}",
                         chain=chain, provider=provider)
        self.chain = chain


class UnsupportedAsset(BridgeError):
    kind = "unsupported_asset"

    def __init__(self, token: str, chain: str, provider: Optional[str] = None) -> None:
        where = f" by {provider}" if provider else ""
        super().__init__(f"Token '{token}' on '{chain}' is not supported{where}",
                         token=token, chain=chain, provider=provider)
        self.token = token
        self.chain = chain


class NoSupportedProvider(BridgeError):
    kind = "no_supported_provider"

    def __init__(self, source_chain: str, destination_chain: str, token: str) -> None:
        super().__init__(
            f"No bridge provider supports {token} from {source_chain} to {destination_chain}",
            source_chain=source_chain, destination_chain=destination_chain, token=token,
        )


class NoValidRoute(BridgeError):
    kind = "no_valid_route"
    retryable = True

    def __init__(self, failures: Mapping[str, str]) -> None:
        super().__init__("Every supporting provider failed to quote", failures=dict(failures))
        self.failures = dict(failures)


class InsufficientBalance(BridgeError):
    kind = "insufficient_balance"

    def __init__(self, token: str, required: Decimal, available: Decimal) -> None:
        self.token = token
        self.required = required
        self.available = available
        self.shortfall = required - available
        super().__init__(
            f"Insufficient {token} balance: need {required}, have {available} (short {self.shortfall})",
            token=token, required=required, available=available, shortfall=self.shortfall,
        )


class InsufficientGas(BridgeError):
    """
    Native balance cannot cover the messaging fee plus execution gas.

    Amounts are in wei. `fee_portion` and `gas_portion` are None when the node only reported
    "insufficient funds" without a breakdown.
    """
    kind = "insufficient_gas"

    def __init__(
            self,
            required: Optional[int] = None,
            available: Optional[int] = None,
            fee_portion: Optional[int] = None,
            gas_portion: Optional[int] = None,
            reason: str = "",
    ) -> None:
        self.required = required
        self.available = available
        self.fee_portion = fee_portion
        self.gas_portion = gas_portion
        self.shortfall = None if required is None or available is None else required - available
        message = reason or (
            f"Insufficient native balance for fees: need {required} wei "
            f"(messaging fee {fee_portion}, gas {gas_portion}), have {available} wei"
        )
        super().__init__(message, required=required, available=available, fee_portion=fee_portion,
                         gas_portion=gas_portion, shortfall=self.shortfall)


class AllowanceFailure(BridgeError):
    kind = "allowance_failure"
    retryable = True

    def __init__(self, token: str, spender: str, reason: str) -> None:
        super().__init__(f"Token approval for {token} failed: {reason}", token=token, spender=spender)


class FeeQuoteFailure(BridgeError):
    kind = "fee_quote_failure"
    retryable = True

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"{provider} fee quote failed: {reason}", provider=provider)


class SlippageExceeded(BridgeError):
    kind = "slippage_exceeded"

    def __init__(self, reason: str) -> None:
        super().__init__(f"Price moved beyond the slippage bound: {reason}", raw_reason=reason)


class ExecutionFailure(BridgeError):
    kind = "execution_failure"

    def __init__(self, raw_reason: str, provider: Optional[str] = None) -> None:
        super().__init__(f"Transaction failed: {raw_reason}", raw_reason=raw_reason, provider=provider)
        self.raw_reason = raw_reason


class MonitoringUnavailable(BridgeError):
    kind = "monitoring_unavailable"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)


class ProviderError(BridgeError):
    """Adapter-side wrapper keeping the originating provider and the underlying cause."""
    kind = "provider_error"

    def __init__(self, provider: str, cause: BaseException) -> None:
        super().__init__(f"{provider}: {cause}", provider=provider)
        self.provider = provider
        self.cause = cause


def _has_marker(text: str, markers: tuple) -> bool:
    return any(marker in text for marker in markers)


def classify_error(exc: BaseException, provider: Optional[str] = None) -> BridgeError:
    """
    Map any exception raised during quoting or execution onto the error taxonomy.

    Args:
        exc: The raised exception, possibly a `ProviderError` wrapping the real cause.
        provider: Provider name attached to generic execution failures.

    Returns:
        A `BridgeError`. Already classified errors are returned unchanged.
    """
    if isinstance(exc, ProviderError):
        if isinstance(exc.cause, BridgeError):
            return exc.cause
        return classify_error(exc.cause, exc.provider)
    if isinstance(exc, BridgeError):
        return exc

    raw_reason = str(exc) or type(exc).__name__
    lowered = raw_reason.lower()

    if _has_marker(lowered, _SLIPPAGE_MARKERS):
        return SlippageExceeded(raw_reason)
    if _has_marker(lowered, _GAS_FUNDS_MARKERS):
        return InsufficientGas(reason=f"Insufficient native balance for gas: {raw_reason}")
    if isinstance(exc, ContractLogicError):
        return ExecutionFailure(f"reverted: {raw_reason}", provider)
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code if exc.response is not None else "n/a"
        return ExecutionFailure(f"HTTP {status_code}: {raw_reason}", provider)
    return ExecutionFailure(raw_reason, provider)
