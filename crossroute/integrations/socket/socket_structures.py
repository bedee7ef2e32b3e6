from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from crossroute.core.utils.dict_utils import _read_decimal_field, _read_int_like_field, _read_path, _read_str_field


@dataclass(frozen=True)
class SocketRoute:
    """One bridge route returned by the aggregator `/quote` endpoint."""
    used_bridge_names: List[str]
    from_amount: int
    to_amount: int
    service_time_seconds: Optional[int]
    total_gas_fees_usd: Optional[Decimal]
    gas_fee_wei: int
    raw: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, node: Mapping[str, Any]) -> "SocketRoute":
        bridge_names = node.get("usedBridgeNames")
        gas_fee_wei = 0
        user_txs = _read_path(node, ["userTxs"])
        if isinstance(user_txs, list):
            for user_tx in user_txs:
                gas_fees = _read_path(user_tx, ["gasFees"])
                if isinstance(gas_fees, Mapping):
                    gas_fee_wei += _read_int_like_field(gas_fees, "gasAmount") or 0
        return cls(
            used_bridge_names=[str(name) for name in bridge_names] if isinstance(bridge_names, list) else [],
            from_amount=_read_int_like_field(node, "fromAmount") or 0,
            to_amount=_read_int_like_field(node, "toAmount") or 0,
            service_time_seconds=_read_int_like_field(node, "serviceTime"),
            total_gas_fees_usd=_read_decimal_field(node, "totalGasFeesInUsd"),
            gas_fee_wei=gas_fee_wei,
            raw=node,
        )


@dataclass(frozen=True)
class SocketTransaction:
    """Ready-to-sign transaction returned by `/build-tx`."""
    to: str
    data: str
    value: int
    gas_limit: Optional[int]
    chain_id: Optional[int]
    approval_target: Optional[str] = None
    approval_token: Optional[str] = None

    @classmethod
    def from_json(cls, result: Mapping[str, Any]) -> "SocketTransaction":
        tx_data = _read_path(result, ["txData"])
        if not isinstance(tx_data, Mapping):
            tx_data = result
        to = _read_str_field(tx_data, "to") or _read_str_field(result, "txTarget")
        data = _read_str_field(tx_data, "data") or _read_str_field(result, "txData")
        if not to or not data:
            raise ValueError("Socket build-tx response is missing the transaction target or calldata.")
        approval = _read_path(result, ["approvalData"])
        approval_target = None
        approval_token = None
        if isinstance(approval, Mapping):
            approval_target = _read_str_field(approval, "allowanceTarget")
            approval_token = _read_str_field(approval, "approvalTokenAddress")
        return cls(
            to=to,
            data=data,
            value=_read_int_like_field(tx_data, "value") or 0,
            gas_limit=_read_int_like_field(tx_data, "gasLimit"),
            chain_id=_read_int_like_field(tx_data, "chainId") or _read_int_like_field(result, "chainId"),
            approval_target=approval_target,
            approval_token=approval_token,
        )
