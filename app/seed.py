"""Herd provisioning - creates the System DAO alpacas on an empty database"""
from decimal import Decimal
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.alpaca import Alpaca
from app.repositories import AlpacaRepository
from app.models import AlpacaRow

logger = logging.getLogger(__name__)


async def seed_alpacas(session: AsyncSession, count: int, starting_value: Decimal) -> int:
    """
    Create `count` system-owned alpacas when the table is empty
    Returns how many were created, 0 when the herd already exists
    """
    existing = await session.scalar(select(func.count()).select_from(AlpacaRow))
    if existing:
        logger.info(f"Herd already provisioned ({existing} alpacas), skipping seed")
        return 0

    repository = AlpacaRepository(session)
    for alpaca_id in range(1, count + 1):
        # Epoch timestamp: the first bid is never cooldown-locked
        await repository.save(Alpaca.provision(alpaca_id, starting_value))

    await session.commit()
    logger.info(f"Provisioned {count} alpacas at {starting_value} each")
    return count
