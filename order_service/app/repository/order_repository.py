from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from ..models.order import Order, OrderItem
from ..services.exceptions import ConcurrentModificationError


@dataclass
class OrderFilter:
    """Optional criteria for listing orders; unset fields do not filter"""

    order_id: Optional[str] = None
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class OrderRepository:
    """
    Order persistence.

    Each call runs in its own session and transaction. Returned orders are
    detached with their items loaded; pass them back to ``save`` after the
    state machine mutated them.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def create(self, fields: Dict[str, Any]) -> Order:
        """Create a new order with items"""
        order_fields = dict(fields)
        items = order_fields.pop("items", [])

        order = Order(**order_fields)
        order.items = [
            OrderItem(position=position, **item) for position, item in enumerate(items)
        ]

        async with self.session_maker() as session:
            session.add(order)
            await session.commit()
        return order

    async def find_by_id(
        self, order_id: str, exclude_deleted: bool = True
    ) -> Optional[Order]:
        """Get order by ID with items"""
        query = select(Order).where(Order.id == order_id)
        if exclude_deleted:
            query = query.where(Order.is_deleted.is_(False))

        async with self.session_maker() as session:
            result = await session.execute(query)
            return result.scalars().first()

    async def save(self, order: Order) -> Order:
        """Persist a loaded order; fails if someone else saved it in between"""
        async with self.session_maker() as session:
            session.add(order)
            try:
                await session.commit()
            except StaleDataError as e:
                await session.rollback()
                raise ConcurrentModificationError(order.id) from e
        return order

    async def query(self, filters: Optional[OrderFilter] = None) -> List[Order]:
        """List non-deleted orders matching the filter, newest first"""
        filters = filters or OrderFilter()
        query = select(Order).where(Order.is_deleted.is_(False))

        if filters.order_id:
            query = query.where(Order.id == filters.order_id)
        if filters.client_id:
            query = query.where(Order.client_id == filters.client_id)
        if filters.client_name:
            query = query.where(Order.client_name.contains(filters.client_name))
        if filters.status:
            query = query.where(Order.status == filters.status)

        if filters.start_date and filters.end_date:
            query = query.where(
                Order.created_at.between(filters.start_date, filters.end_date)
            )
        elif filters.start_date:
            query = query.where(Order.created_at >= filters.start_date)
        elif filters.end_date:
            query = query.where(Order.created_at <= filters.end_date)

        query = query.order_by(Order.created_at.desc())

        async with self.session_maker() as session:
            result = await session.execute(query)
            return list(result.scalars().all())
