"""Protocol adapters for the supported subgraph indexes."""

# Import all adapters to trigger auto-registration
from defi_portfolio_tracker.protocols.aave import AaveAdapter
from defi_portfolio_tracker.protocols.balancer import BalancerAdapter
from defi_portfolio_tracker.protocols.base import BaseProtocolAdapter
from defi_portfolio_tracker.protocols.compound import CompoundAdapter
from defi_portfolio_tracker.protocols.curve import CurveAdapter
from defi_portfolio_tracker.protocols.service import ProtocolAdapterService
from defi_portfolio_tracker.protocols.uniswap import UniswapAdapter

__all__ = [
    "AaveAdapter",
    "BalancerAdapter",
    "BaseProtocolAdapter",
    "CompoundAdapter",
    "CurveAdapter",
    "ProtocolAdapterService",
    "UniswapAdapter",
]
