from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime, timezone
from collections import defaultdict
from typing import Dict, List, Optional

from app.models import AlpacaRow, TransactionRow
from app.domain.alpaca import Alpaca, AccessoryType, TransactionRecord


def _aware(value: datetime) -> datetime:
    """SQLite drops tzinfo; every timestamp in the domain is UTC-aware"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AlpacaRepository:
    """Alpaca storage backed by SQLAlchemy

    Does not commit: the caller owns the database transaction so the alpaca
    row and its new ledger row land together or not at all.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _to_domain(self, row: AlpacaRow, history: List[TransactionRow]) -> Alpaca:
        return Alpaca(
            id=row.id,
            display_name=row.name,
            coat_color=row.color,
            accessory=AccessoryType(row.accessory),
            pen_color=row.stable_color,
            background_image=row.background_image,
            valuation=row.current_value,
            owner_name=row.owner_name,
            owner_secret_hash=row.password_hash,
            last_transfer_at=_aware(row.last_transfer_at),
            ledger=[
                TransactionRecord(
                    id=t.id,
                    occurred_at=_aware(t.occurred_at),
                    previous_owner_name=t.previous_owner,
                    new_owner_name=t.new_owner,
                    settled_amount=t.amount,
                )
                for t in history
            ],
        )

    async def _load_history(self, alpaca_ids: List[int]) -> Dict[int, List[TransactionRow]]:
        """Ledger rows grouped by alpaca, most recent first"""
        if not alpaca_ids:
            return {}

        stmt = select(TransactionRow).where(
            TransactionRow.alpaca_id.in_(alpaca_ids)
        ).order_by(TransactionRow.occurred_at.desc(), TransactionRow.id.desc())

        result = await self.db.execute(stmt)

        grouped = defaultdict(list)
        for t in result.scalars().all():
            grouped[t.alpaca_id].append(t)
        return grouped

    async def _get_row(self, alpaca_id: int, for_update: bool = False) -> Optional[AlpacaRow]:
        stmt = select(AlpacaRow).where(AlpacaRow.id == alpaca_id)
        if for_update:
            # Serializes concurrent bids on the same alpaca
            stmt = stmt.with_for_update()

        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_id(self, alpaca_id: int, for_update: bool = False) -> Optional[Alpaca]:
        row = await self._get_row(alpaca_id, for_update=for_update)
        if not row:
            return None

        history = await self._load_history([row.id])
        return self._to_domain(row, history.get(row.id, []))

    async def get_all(self) -> List[Alpaca]:
        result = await self.db.execute(select(AlpacaRow).order_by(AlpacaRow.id))
        rows = result.scalars().all()

        history = await self._load_history([r.id for r in rows])
        return [self._to_domain(r, history.get(r.id, [])) for r in rows]

    async def save(self, alpaca: Alpaca) -> Alpaca:
        """
        Write the alpaca state and insert its unsaved ledger records
        Flushes but does not commit
        """
        row = await self._get_row(alpaca.id)
        if not row:
            row = AlpacaRow(id=alpaca.id)
            self.db.add(row)

        row.name = alpaca.display_name
        row.color = alpaca.coat_color
        row.accessory = alpaca.accessory
        row.stable_color = alpaca.pen_color
        row.background_image = alpaca.background_image
        row.current_value = alpaca.valuation
        row.owner_name = alpaca.owner_name
        row.password_hash = alpaca.owner_secret_hash
        row.last_transfer_at = alpaca.last_transfer_at

        # Oldest first so row ids follow ledger order
        new_entries = [
            TransactionRow(
                alpaca_id=alpaca.id,
                previous_owner=record.previous_owner_name,
                new_owner=record.new_owner_name,
                amount=record.settled_amount,
                occurred_at=record.occurred_at,
            )
            for record in reversed(alpaca.ledger)
            if record.id is None
        ]
        self.db.add_all(new_entries)

        await self.db.flush()

        return await self.get_by_id(alpaca.id)
