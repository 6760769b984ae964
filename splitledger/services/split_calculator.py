"""Turns an expense total into per-participant shares.

Every amount is rounded to cents as soon as it is assigned to someone, so the
shares of one expense may drift from the total by a cent or so. The drift is
not redistributed; ``check_reconciles`` rejects a total that ends up further
than ``TOLERANCE`` away from the expense amount.
"""
import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping

from pydantic import ValidationError as SchemaError

from splitledger.core.exceptions import ValidationError
from splitledger.core.utils import ZERO, qround, to_decimal, within_tolerance
from splitledger.schemas.split import (
    CustomSplit,
    EqualSplit,
    ItemizedSplit,
    PercentageSplit,
    Split,
    Surcharge,
    split_params_adapter,
)

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def compute_splits(total_amount, participant_ids: Iterable[int], params) -> List[Split]:
    """Compute one :class:`Split` per participant, in participant order.

    ``params`` is one of the split parameter models, or a mapping carrying a
    ``method`` key that is parsed into one. Raises ``ValidationError`` when
    the input is inconsistent; nothing is ever partially computed.
    """
    total = to_decimal(total_amount)
    if total <= 0:
        raise ValidationError("Expense amount must be positive", field="amount")

    participants = list(participant_ids)
    if not participants:
        raise ValidationError("At least one participant is required", field="participants")
    if len(participants) != len(set(participants)):
        raise ValidationError("Duplicate participants in split", field="participants")

    params = parse_split_params(params)

    if isinstance(params, EqualSplit):
        splits = _equal(total, participants)
    elif isinstance(params, PercentageSplit):
        splits = _percentage(total, participants, params.percentages)
    elif isinstance(params, CustomSplit):
        splits = _custom(total, participants, params.amounts)
    else:
        splits = _itemized(participants, params)

    logger.debug("%s split of %s across %d participants", params.method, total, len(splits))
    return splits


def check_reconciles(total_amount, splits: List[Split]):
    """Reject shares that drift more than ``TOLERANCE`` from the expense total.

    Previews skip this so the drift can be shown; saving an expense does not.
    """
    total = to_decimal(total_amount)
    split_total = sum((s.amount for s in splits), ZERO)
    if not within_tolerance(split_total, total):
        raise ValidationError(
            f"Split amounts ({split_total}) do not equal total ({qround(total)})",
            field="amount",
        )


def parse_split_params(params):
    if isinstance(params, (EqualSplit, PercentageSplit, CustomSplit, ItemizedSplit)):
        return params
    if not isinstance(params, Mapping):
        raise ValidationError("Split parameters are required", field="split")
    try:
        return split_params_adapter.validate_python(params)
    except SchemaError as e:
        raise ValidationError(f"Invalid split parameters: {e.errors()[0]['msg']}", field="split")


def _equal(total: Decimal, participants: List[int]) -> List[Split]:
    share = qround(total / len(participants))
    return [Split(user_id=uid, amount=share) for uid in participants]


def _check_keys(supplied: Mapping[int, Decimal], participants: List[int], what: str):
    missing = [uid for uid in participants if uid not in supplied]
    if missing:
        raise ValidationError(f"{what} must be provided for all participants (missing {missing})", field=what)

    extra = sorted(set(supplied) - set(participants))
    if extra:
        raise ValidationError(f"{what} given for non-participants {extra}", field=what)


def _percentage(total: Decimal, participants: List[int], percentages: Dict[int, Decimal]) -> List[Split]:
    _check_keys(percentages, participants, "percentages")

    pct_total = sum(percentages.values(), ZERO)
    if not within_tolerance(pct_total, HUNDRED):
        raise ValidationError(f"Percentages must add up to 100% (got {pct_total})", field="percentages")

    return [
        Split(
            user_id=uid,
            amount=qround(total * percentages[uid] / HUNDRED),
            percentage=percentages[uid],
        )
        for uid in participants
    ]


def _custom(total: Decimal, participants: List[int], amounts: Dict[int, Decimal]) -> List[Split]:
    _check_keys(amounts, participants, "amounts")

    supplied = sum(amounts.values(), ZERO)
    if not within_tolerance(supplied, total):
        raise ValidationError(f"Custom amounts ({supplied}) must equal total ({total})", field="amounts")

    return [Split(user_id=uid, amount=qround(amounts[uid])) for uid in participants]


def _itemized(participants: List[int], params: ItemizedSplit) -> List[Split]:
    if not params.items:
        raise ValidationError("Items must be provided for itemized split", field="items")

    running: Dict[int, Decimal] = {uid: ZERO for uid in participants}
    assigned = 0

    for item in params.items:
        if item.assigned_to is None:
            continue
        if item.assigned_to not in running:
            raise ValidationError(
                f"Item '{item.name}' is assigned to non-participant {item.assigned_to}",
                field="items",
            )
        running[item.assigned_to] += qround(item.price)
        assigned += 1

    if not assigned:
        raise ValidationError("No item is assigned to a participant", field="items")

    # tax is spread over item subtotals, tip over subtotal + tax
    _allocate(running, params.tax)
    _allocate(running, params.tip)

    return [
        Split(
            user_id=uid,
            amount=qround(running[uid]),
            items=[item for item in params.items if item.assigned_to == uid],
        )
        for uid in participants
    ]


def _allocate(running: Dict[int, Decimal], surcharge: Surcharge | None):
    if surcharge is None or not surcharge.amount:
        return

    if surcharge.split_method == "equal":
        per_person = qround(surcharge.amount / len(running))
        for uid in running:
            running[uid] += per_person
        return

    base = sum(running.values(), ZERO)
    proportions = {
        uid: (subtotal / base if base > 0 else ZERO)
        for uid, subtotal in running.items()
    }
    for uid, proportion in proportions.items():
        running[uid] += qround(surcharge.amount * proportion)
