"""Milestone plan validation and release amounts for project funding"""

from decimal import ROUND_DOWN, Decimal
from typing import Any, Iterable, List, Mapping, Optional, Union

from investie_client.domain.exceptions import ValidationError
from investie_client.domain.payloads import Milestone, parse_milestone

MAX_MILESTONES = 4
MAX_TOTAL_PERCENTAGE = Decimal("100")
CENTAVO = Decimal("0.01")


def total_percentage(milestones: Iterable[Milestone]) -> Decimal:
    return sum((m.percentage for m in milestones), Decimal("0"))


def validate_milestones(raw: Iterable[Union[Milestone, Mapping[str, Any]]]) -> List[Milestone]:
    """
    Parse and check a milestone plan before it is sent to the platform.

    Rules:
    - At most 4 milestones per project
    - Percentages across all milestones must not exceed 100

    Raises:
        ValidationError: If any rule is broken
    """
    milestones = [parse_milestone(m) for m in raw]

    if len(milestones) > MAX_MILESTONES:
        raise ValidationError(
            f"A project can have at most {MAX_MILESTONES} milestones",
            {"milestones": [f"got {len(milestones)}"]},
        )

    total = total_percentage(milestones)
    if total > MAX_TOTAL_PERCENTAGE:
        raise ValidationError(
            "Total percentage cannot exceed 100%",
            {"milestones": [f"percentages sum to {total}"]},
        )

    return milestones


def allocate_release_amounts(
    funding_requirement: Optional[Decimal],
    milestones: List[Milestone],
) -> List[Milestone]:
    """
    Fill in each milestone's amount from its percentage of the funding requirement.

    Milestones that already carry an amount keep it. Amounts are rounded down to
    the centavo. When every amount is computed here and the plan covers 100%, the
    last milestone absorbs the rounding remainder so releases add up to the
    requirement exactly.

    Example:
        ₱100,000.01 at [50, 50] → [₱50,000.00, ₱50,000.01]
    """
    if not funding_requirement or not milestones:
        return list(milestones)

    allocated = []
    for m in milestones:
        if m.amount is None:
            amount = (funding_requirement * m.percentage / MAX_TOTAL_PERCENTAGE).quantize(
                CENTAVO, rounding=ROUND_DOWN
            )
            m = m.model_copy(update={"amount": amount})
        allocated.append(m)

    computed = all(m.amount is None for m in milestones)
    if computed and total_percentage(milestones) == MAX_TOTAL_PERCENTAGE:
        drift = funding_requirement - sum((m.amount for m in allocated), Decimal("0"))
        if drift > 0:
            last = allocated[-1]
            allocated[-1] = last.model_copy(update={"amount": last.amount + drift})

    return allocated
