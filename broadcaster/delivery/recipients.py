"""
Recipient resolution: manual addresses plus group members, deduplicated.
"""
from typing import Iterable, List, Optional, Protocol, Sequence

from ..errors import NoRecipientsError
from ..logging_config import delivery_logger


class GroupDirectory(Protocol):
    """Looks up the member addresses of a broadcast group."""

    def addresses_for(self, group_id) -> Sequence[str]:
        ...


class RecipientResolver:
    """Flattens manual addresses and group members into one address list.

    Addresses are compared verbatim (case-sensitive). The result keeps
    first-seen order, though callers must only rely on membership. A group
    whose lookup fails is logged and skipped so the remaining groups still
    contribute.
    """

    def __init__(self, directory: GroupDirectory):
        self.directory = directory

    def collect(
        self,
        manual: Optional[Iterable[str]] = None,
        group_ids: Optional[Iterable] = None,
    ) -> List[str]:
        """Resolve without enforcing non-emptiness (used when saving drafts)."""
        seen = {}
        for address in manual or ():
            if address:
                seen.setdefault(address, None)

        for group_id in group_ids or ():
            try:
                members = self.directory.addresses_for(group_id)
            except Exception as e:
                delivery_logger.warning(
                    "Group lookup failed, skipping group",
                    group_id=group_id,
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
                continue
            for address in members:
                if address:
                    seen.setdefault(address, None)

        return list(seen)

    def resolve(
        self,
        manual: Optional[Iterable[str]] = None,
        group_ids: Optional[Iterable] = None,
    ) -> List[str]:
        """Resolve and require at least one address."""
        addresses = self.collect(manual, group_ids)
        if not addresses:
            raise NoRecipientsError()
        return addresses
