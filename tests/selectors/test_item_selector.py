"""Tests for ownership-scoped item queries."""

from uuid import uuid4

import pytest

from tea_kernel.domain.dtos import ItemFields
from tea_kernel.exceptions import InvalidFieldError, ItemNotFoundError
from tea_kernel.models.item import ItemKind
from tea_kernel.selectors.item_selector import ItemSelector
from tea_kernel.services.item_service import ItemService


@pytest.fixture
def collection(session, clock, owner, other_owner):
    service = ItemService(session, clock)
    created = {}
    for name, kind, origin, who in [
        ("Longjing", "TEA", "Hangzhou", owner),
        ("Gaiwan", "TEAWARE", "Jingdezhen", owner),
        ("Menghai 7542", "TEA", "Yunnan", owner),
        ("Bob's Oolong", "TEA", "Anxi", other_owner),
    ]:
        clock.tick()
        created[name] = service.create(who, ItemFields(name=name, kind=kind, origin=origin))
    return created


@pytest.fixture
def selector(session):
    return ItemSelector(session)


class TestList:
    def test_only_own_items_newest_first(self, selector, owner, collection):
        names = [i.name for i in selector.list(owner)]
        assert names == ["Menghai 7542", "Gaiwan", "Longjing"]

    def test_other_owner_sees_only_theirs(self, selector, other_owner, collection):
        assert [i.name for i in selector.list(other_owner)] == ["Bob's Oolong"]

    def test_filter_by_kind(self, selector, owner, collection):
        result = selector.list(owner, kind="teaware")
        assert [i.name for i in result] == ["Gaiwan"]
        assert all(i.kind is ItemKind.TEAWARE for i in result)

    def test_unknown_kind(self, selector, owner, collection):
        with pytest.raises(InvalidFieldError):
            selector.list(owner, kind="COFFEE")

    def test_search_is_case_insensitive_over_origin(self, selector, owner, collection):
        assert [i.name for i in selector.list(owner, query="yunNAN")] == ["Menghai 7542"]

    def test_search_never_crosses_owners(self, selector, owner, collection):
        assert selector.list(owner, query="oolong") == []

    def test_search_wildcards_are_literal(self, selector, owner, collection):
        assert selector.list(owner, query="%") == []


class TestGet:
    def test_own_item(self, selector, owner, collection):
        item = selector.get(owner, collection["Longjing"].id)
        assert item.name == "Longjing"

    def test_foreign_and_missing_look_the_same(self, selector, owner, collection):
        with pytest.raises(ItemNotFoundError) as foreign:
            selector.get(owner, collection["Bob's Oolong"].id)
        with pytest.raises(ItemNotFoundError) as missing:
            selector.get(owner, uuid4())
        assert foreign.value.code == missing.value.code

    def test_malformed_id(self, selector, owner):
        with pytest.raises(ItemNotFoundError):
            selector.get(owner, "42")
