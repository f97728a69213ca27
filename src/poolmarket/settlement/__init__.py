"""Pool resolution: payout arithmetic and the transactional settlement run."""

from poolmarket.settlement.engine import ResolutionResult, SettlementConfig, resolve_market
from poolmarket.settlement.payout import Payout, ResolutionOutcome, compute_resolution

__all__ = [
    "Payout",
    "ResolutionOutcome",
    "ResolutionResult",
    "SettlementConfig",
    "compute_resolution",
    "resolve_market",
]
