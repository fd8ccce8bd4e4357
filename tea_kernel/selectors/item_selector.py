"""
Module: tea_kernel.selectors.item_selector
Responsibility: Read-only, ownership-scoped queries over items.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every query filters by the caller's account id.
    - get() raises ItemNotFoundError for absent and foreign items alike.
"""

from uuid import UUID

from sqlalchemy import or_, select

from tea_kernel.domain.dtos import Identity, ItemInfo, parse_uuid
from tea_kernel.exceptions import InvalidFieldError, ItemNotFoundError
from tea_kernel.models.item import Item, ItemKind
from tea_kernel.selectors.base import BaseSelector


_LIKE_ESCAPE = "/"


def _escape_like(text: str) -> str:
    for ch in (_LIKE_ESCAPE, "%", "_"):
        text = text.replace(ch, _LIKE_ESCAPE + ch)
    return text


class ItemSelector(BaseSelector[Item]):
    """Queries over the caller's items."""

    def list(
        self,
        identity: Identity,
        kind: ItemKind | str | None = None,
        query: str | None = None,
    ) -> list[ItemInfo]:
        """
        The caller's items, newest first.

        Args:
            identity: Resolved caller.
            kind: Optional TEA / TEAWARE filter.
            query: Optional case-insensitive substring matched against
                name, category, origin and description.

        Raises:
            InvalidFieldError: Unknown kind.
        """
        stmt = select(Item).where(Item.owner_id == identity.account_id)

        if kind:
            try:
                parsed_kind = ItemKind(str(getattr(kind, "value", kind)).upper())
            except ValueError:
                raise InvalidFieldError(
                    "kind", f"must be one of {[k.value for k in ItemKind]}"
                ) from None
            stmt = stmt.where(Item.kind == parsed_kind.value)

        text = (query or "").strip()
        if text:
            pattern = f"%{_escape_like(text)}%"
            stmt = stmt.where(
                or_(
                    Item.name.ilike(pattern, escape=_LIKE_ESCAPE),
                    Item.category.ilike(pattern, escape=_LIKE_ESCAPE),
                    Item.origin.ilike(pattern, escape=_LIKE_ESCAPE),
                    Item.description.ilike(pattern, escape=_LIKE_ESCAPE),
                )
            )

        stmt = stmt.order_by(Item.created_at.desc(), Item.name.asc())
        items = self.session.execute(stmt).scalars().all()
        return [ItemInfo.from_model(item) for item in items]

    def get(self, identity: Identity, item_id: UUID | str) -> ItemInfo:
        """
        One of the caller's items.

        Raises:
            ItemNotFoundError: Absent, malformed id, or not owned by caller.
        """
        parsed = parse_uuid(item_id)
        if parsed is None:
            raise ItemNotFoundError(str(item_id))

        item = self.session.execute(
            select(Item).where(
                Item.id == parsed, Item.owner_id == identity.account_id
            )
        ).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return ItemInfo.from_model(item)
