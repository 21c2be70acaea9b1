"""In-memory share store, for development and tests."""

from typing import Dict, Optional

from ..bases import ShareStore
from ...schemas.bases import IdentifierKind, WalletShareRecord


class InMemoryShareStore(ShareStore):
    """Process-local share records; lost on restart."""

    def __init__(self) -> None:
        self._records: Dict[str, WalletShareRecord] = {}

    async def put(self, identifier: str, kind: IdentifierKind, share: str) -> None:
        if identifier in self._records:
            raise ValueError(f"Share already stored for identifier: {identifier}")
        self._records[identifier] = WalletShareRecord(
            identifier=identifier,
            identifier_kind=kind,
            user_share=share,
        )

    async def get(self, identifier: str) -> Optional[str]:
        record = self._records.get(identifier)
        return record.user_share if record else None

    async def get_kind(self, identifier: str) -> Optional[IdentifierKind]:
        record = self._records.get(identifier)
        return record.identifier_kind if record else None

    async def exists(self, identifier: str) -> bool:
        return identifier in self._records

    def records(self) -> Dict[str, WalletShareRecord]:
        return dict(self._records)
