"""ABI of the deployed position ledger contract."""

POSITION_TUPLE = {
    "name": "",
    "type": "tuple",
    "components": [
        {"name": "token", "type": "address"},
        {"name": "protocol", "type": "string"},
        {"name": "amount", "type": "uint256"},
        {"name": "timestamp", "type": "uint256"},
        {"name": "entryPrice", "type": "uint256"},
        {"name": "active", "type": "bool"},
    ],
}

LEDGER_ABI = [
    {
        "type": "function",
        "name": "addPosition",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "token", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "entryPrice", "type": "uint256"},
            {"name": "protocol", "type": "string"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "removePosition",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "positionId", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "updatePosition",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "positionId", "type": "uint256"},
            {"name": "newAmount", "type": "uint256"},
            {"name": "newEntryPrice", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getPosition",
        "stateMutability": "view",
        "inputs": [
            {"name": "user", "type": "address"},
            {"name": "positionId", "type": "uint256"},
        ],
        "outputs": [POSITION_TUPLE],
    },
    {
        "type": "function",
        "name": "getAllPositions",
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{**POSITION_TUPLE, "type": "tuple[]"}],
    },
    {
        "type": "function",
        "name": "getPositionCount",
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "event",
        "name": "PositionAdded",
        "anonymous": False,
        "inputs": [
            {"name": "user", "type": "address", "indexed": True},
            {"name": "token", "type": "address", "indexed": False},
            {"name": "protocol", "type": "string", "indexed": False},
            {"name": "amount", "type": "uint256", "indexed": False},
            {"name": "entryPrice", "type": "uint256", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "PositionRemoved",
        "anonymous": False,
        "inputs": [
            {"name": "user", "type": "address", "indexed": True},
            {"name": "positionId", "type": "uint256", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "PositionUpdated",
        "anonymous": False,
        "inputs": [
            {"name": "user", "type": "address", "indexed": True},
            {"name": "positionId", "type": "uint256", "indexed": False},
            {"name": "newAmount", "type": "uint256", "indexed": False},
            {"name": "newEntryPrice", "type": "uint256", "indexed": False},
        ],
    },
]
