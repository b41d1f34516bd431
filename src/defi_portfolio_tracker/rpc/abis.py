"""ABI fragments for the read-only calls made by the chain access layer."""


def _view(name: str, inputs: list[tuple[str, str]], outputs: list[tuple[str, str]]) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
    }


ERC20_ABI = [
    _view("symbol", [], [("", "string")]),
    _view("decimals", [], [("", "uint8")]),
    _view("totalSupply", [], [("", "uint256")]),
    _view("balanceOf", [("account", "address")], [("", "uint256")]),
]

# Uniswap V2-style pair
PAIR_ABI = [
    _view("token0", [], [("", "address")]),
    _view("token1", [], [("", "address")]),
    _view(
        "getReserves",
        [],
        [("reserve0", "uint112"), ("reserve1", "uint112"), ("blockTimestampLast", "uint32")],
    ),
    _view("totalSupply", [], [("", "uint256")]),
]

# Aave-style lending pool
LENDING_POOL_ABI = [
    _view(
        "getUserAccountData",
        [("user", "address")],
        [
            ("totalCollateralETH", "uint256"),
            ("totalDebtETH", "uint256"),
            ("availableBorrowsETH", "uint256"),
            ("currentLiquidationThreshold", "uint256"),
            ("ltv", "uint256"),
            ("healthFactor", "uint256"),
        ],
    ),
    _view(
        "getReserveData",
        [("asset", "address")],
        [
            ("availableLiquidity", "uint256"),
            ("totalStableDebt", "uint256"),
            ("totalVariableDebt", "uint256"),
            ("liquidityRate", "uint256"),
            ("variableBorrowRate", "uint256"),
            ("stableBorrowRate", "uint256"),
            ("averageStableBorrowRate", "uint256"),
            ("liquidityIndex", "uint256"),
            ("variableBorrowIndex", "uint256"),
            ("lastUpdateTimestamp", "uint40"),
        ],
    ),
]
