"""
SQL-backed group directory used by the recipient resolver.
"""
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from ..errors import GroupLookupError
from ..models.broadcast_group import BroadcastGroup, group_subscribers
from ..models.subscriber import Subscriber


class SqlGroupDirectory:
    """Active subscriber addresses per group.

    The default group has no explicit membership: it stands for every
    active subscriber of the group's owner.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def addresses_for(self, group_id) -> List[str]:
        try:
            group_id = int(group_id)
        except (TypeError, ValueError):
            raise GroupLookupError(f"Invalid group id: {group_id!r}")

        with self._session_factory() as db:
            group = db.get(BroadcastGroup, group_id)
            if group is None:
                raise GroupLookupError(f"Group {group_id} not found")

            query = select(Subscriber.email).where(Subscriber.is_active.is_(True))
            if group.is_default:
                query = query.where(Subscriber.owner_id == group.owner_id)
            else:
                query = query.join(
                    group_subscribers, group_subscribers.c.subscriber_id == Subscriber.id
                ).where(group_subscribers.c.group_id == group_id)

            return list(db.execute(query.order_by(Subscriber.id)).scalars().all())
