"""Portfolio risk scoring."""

from collections.abc import Iterable
from decimal import Decimal
from enum import StrEnum

from defi_portfolio_tracker.core.fixedpoint import divide, total


class UnknownRisk(StrEnum):
    """
    How positions without a risk figure count toward the portfolio score.

    COUNT_AS_ZERO averages over every position with unknown risk taken as 0.
    EXCLUDE averages over the positions that have a figure only.

    """

    COUNT_AS_ZERO = "zero"
    EXCLUDE = "exclude"


class RiskPolicy:
    """
    Mean of per-position risk on a 0-10 scale.

    Parameters
    ----------
    unknown : UnknownRisk
        Treatment of positions without a risk figure

    """

    def __init__(self, unknown: UnknownRisk = UnknownRisk.COUNT_AS_ZERO) -> None:
        self.unknown = UnknownRisk(unknown)

    def score(self, risks: Iterable[Decimal | None]) -> Decimal:
        """
        Compute the portfolio risk score.

        Parameters
        ----------
        risks : Iterable[Decimal | None]
            Per-position risk, None where unknown

        Returns
        -------
        Decimal
            Mean risk, 0 when there is nothing to average

        """
        risks = list(risks)
        if self.unknown is UnknownRisk.EXCLUDE:
            values = [r for r in risks if r is not None]
        else:
            values = [r if r is not None else Decimal(0) for r in risks]

        if not values:
            return Decimal(0)
        return divide(total(values), Decimal(len(values)))

    def factors(self, risks: Iterable[Decimal | None], high_threshold: Decimal = Decimal(7)) -> list[str]:
        """Describe the figures behind a score in plain words."""
        risks = list(risks)
        known = [r for r in risks if r is not None]
        unknown = len(risks) - len(known)

        factors = []
        if not risks:
            factors.append("No active positions")
            return factors

        factors.append(f"{len(known)} of {len(risks)} positions have a risk figure")
        if unknown:
            if self.unknown is UnknownRisk.EXCLUDE:
                factors.append(f"{unknown} positions without a risk figure are excluded")
            else:
                factors.append(f"{unknown} positions without a risk figure count as 0")
        high = [r for r in known if r >= high_threshold]
        if high:
            factors.append(f"{len(high)} positions at or above risk {high_threshold}")
        return factors
