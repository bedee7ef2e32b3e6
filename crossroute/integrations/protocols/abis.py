"""
Bridge Contract ABIs and Constants
"""
from typing import Any, Final, List

MAX_UINT256: Final[int] = 2 ** 256 - 1
ZERO_ADDRESS: Final[str] = "0x0000000000000000000000000000000000000000"

ERC20_ABI: Final[List[Any]] = [
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]

_LZ_TX_PARAMS_COMPONENTS: Final[List[Any]] = [
    {"internalType": "uint256", "name": "dstGasForCall", "type": "uint256"},
    {"internalType": "uint256", "name": "dstNativeAmount", "type": "uint256"},
    {"internalType": "bytes", "name": "dstNativeAddr", "type": "bytes"},
]

STARGATE_ROUTER_ABI: Final[List[Any]] = [
    {
        "inputs": [
            {"internalType": "uint16", "name": "_dstChainId", "type": "uint16"},
            {"internalType": "uint256", "name": "_srcPoolId", "type": "uint256"},
            {"internalType": "uint256", "name": "_dstPoolId", "type": "uint256"},
            {"internalType": "address payable", "name": "_refundAddress", "type": "address"},
            {"internalType": "uint256", "name": "_amountLD", "type": "uint256"},
            {"internalType": "uint256", "name": "_minAmountLD", "type": "uint256"},
            {
                "components": _LZ_TX_PARAMS_COMPONENTS,
                "internalType": "struct IStargateRouter.lzTxObj",
                "name": "_lzTxParams",
                "type": "tuple",
            },
            {"internalType": "bytes", "name": "_to", "type": "bytes"},
            {"internalType": "bytes", "name": "_payload", "type": "bytes"},
        ],
        "name": "swap",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint16", "name": "_dstChainId", "type": "uint16"},
            {"internalType": "uint8", "name": "_functionType", "type": "uint8"},
            {"internalType": "bytes", "name": "_toAddress", "type": "bytes"},
            {"internalType": "bytes", "name": "_transferAndCallPayload", "type": "bytes"},
            {
                "components": _LZ_TX_PARAMS_COMPONENTS,
                "internalType": "struct IStargateRouter.lzTxObj",
                "name": "_lzTxParams",
                "type": "tuple",
            },
        ],
        "name": "quoteLayerZeroFee",
        "outputs": [
            {"internalType": "uint256", "name": "", "type": "uint256"},
            {"internalType": "uint256", "name": "", "type": "uint256"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

STARGATE_ROUTER_ETH_ABI: Final[List[Any]] = [
    {
        "inputs": [
            {"internalType": "uint16", "name": "_dstChainId", "type": "uint16"},
            {"internalType": "address payable", "name": "_refundAddress", "type": "address"},
            {"internalType": "bytes", "name": "_toAddress", "type": "bytes"},
            {"internalType": "uint256", "name": "_amountLD", "type": "uint256"},
            {"internalType": "uint256", "name": "_minAmountLD", "type": "uint256"},
        ],
        "name": "swapETH",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
]

# layerzero function type for a plain remote swap
STARGATE_TYPE_SWAP_REMOTE: Final[int] = 1

HOP_BRIDGE_ABI: Final[List[Any]] = [
    {
        "inputs": [
            {"internalType": "uint256", "name": "chainId", "type": "uint256"},
            {"internalType": "address", "name": "recipient", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            {"internalType": "uint256", "name": "amountOutMin", "type": "uint256"},
            {"internalType": "uint256", "name": "deadline", "type": "uint256"},
            {"internalType": "address", "name": "relayer", "type": "address"},
            {"internalType": "uint256", "name": "relayerFee", "type": "uint256"},
        ],
        "name": "sendToL2",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "chainId", "type": "uint256"},
            {"internalType": "address", "name": "recipient", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            {"internalType": "uint256", "name": "bonderFee", "type": "uint256"},
            {"internalType": "uint256", "name": "amountOutMin", "type": "uint256"},
            {"internalType": "uint256", "name": "deadline", "type": "uint256"},
            {"internalType": "uint256", "name": "destinationAmountOutMin", "type": "uint256"},
            {"internalType": "uint256", "name": "destinationDeadline", "type": "uint256"},
        ],
        "name": "swapAndSend",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "uint256", "name": "chainId", "type": "uint256"},
            {"internalType": "address", "name": "recipient", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "name": "estimateSendFee",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

ACROSS_SPOKE_POOL_ABI: Final[List[Any]] = [
    {
        "inputs": [
            {"internalType": "address", "name": "recipient", "type": "address"},
            {"internalType": "address", "name": "originToken", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            {"internalType": "uint256", "name": "destinationChainId", "type": "uint256"},
            {"internalType": "uint256", "name": "relayerFeePct", "type": "uint256"},
            {"internalType": "uint256", "name": "quoteTimestamp", "type": "uint256"},
            {"internalType": "bytes", "name": "message", "type": "bytes"},
        ],
        "name": "deposit",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "address", "name": "originToken", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            {"internalType": "uint256", "name": "destinationChainId", "type": "uint256"},
        ],
        "name": "quoteRelayerFee",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

BICONOMY_FORWARDER_ABI: Final[List[Any]] = [
    {
        "inputs": [
            {"internalType": "address", "name": "from", "type": "address"},
            {"internalType": "uint256", "name": "batchId", "type": "uint256"},
        ],
        "name": "getNonce",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# Completion events observed on destination contracts
STARGATE_SWAP_REMOTE_EVENT: Final[str] = "SwapRemote(uint16,bytes,uint256,address,uint256,uint256)"
HOP_TRANSFER_FROM_L1_COMPLETED_EVENT: Final[str] = (
    "TransferFromL1Completed(address,uint256,uint256,uint256,address,uint256)"
)
ACROSS_FILLED_RELAY_EVENT: Final[str] = (
    "FilledV3Relay(address,address,uint256,uint256,uint256,uint256,uint32,uint32,uint32,"
    "address,address,address,address,bytes,(address,bytes,uint256,uint8))"
)
