from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from splitledger.core.utils import ZERO, qround
from splitledger.db.balance_store import list_open_balances
from splitledger.models.balance import Balance
from splitledger.schemas.balances import NetTransfer


def simplify_balances(balances: Iterable[Balance]) -> List[NetTransfer]:
    # Merges identical debtor -> creditor edges only. A -> B and B -> A both
    # survive, and chains like A -> B -> C are not shortened.
    edges: Dict[Tuple[int, int], Decimal] = {}

    for b in balances:
        key = (b.debtor_id, b.creditor_id)
        edges[key] = edges.get(key, ZERO) + b.amount

    return [
        NetTransfer(from_id=debtor, to_id=creditor, amount=qround(amount))
        for (debtor, creditor), amount in edges.items()
    ]


async def simplify(db: AsyncSession, group_id: int) -> List[NetTransfer]:
    balances = await list_open_balances(db, group_id=group_id)
    return simplify_balances(balances)
