# Overview: Pytest coverage for each inventory resolver strategy and their ordering.

import pytest

from brewcore.errors import NotFoundError
from brewcore.services import inventory_resolver
from brewcore.services.inventory_resolver import (
    ResolveRequest,
    extract_size_token,
    hinted_kinds,
    resolve_item,
)


class TestHintParsing:
    def test_size_token(self):
        assert extract_size_token("bottle 500") == "500"
        assert extract_size_token("Bottle 0,5 / 500ml") == "0.5"
        assert extract_size_token("keg") is None
        assert extract_size_token(None) is None

    def test_kinds_multilingual(self):
        assert hinted_kinds("Bottle 330") == ["bottle"]
        assert hinted_kinds("ბოთლი 500") == ["bottle"]
        assert hinted_kinds("Этикетка") == ["label"]
        assert hinted_kinds("ქილა") == ["can"]
        assert hinted_kinds("crown cap") == ["cap"]
        assert hinted_kinds("500") == []

    def test_kinds_last_named_first(self):
        assert hinted_kinds("bottle cap") == ["cap", "bottle"]
        assert hinted_kinds("Cap for bottle 500") == ["bottle", "cap"]

    def test_kinds_match_word_starts_only(self):
        assert hinted_kinds("scanner") == []
        assert hinted_kinds("Vulcan lager") == []
        assert hinted_kinds("cans 330") == ["can"]


class TestStrategies:
    def test_explicit_id(self, db_session, ctx_a, make_item):
        item = make_item(ctx_a, "CAPS")
        found = inventory_resolver.explicit_id(ctx_a, ResolveRequest(item_id=item.id))
        assert found.id == item.id

    def test_explicit_id_other_tenant(self, db_session, ctx_a, ctx_b, make_item):
        item_b = make_item(ctx_b, "CAPS")
        assert inventory_resolver.explicit_id(ctx_a, ResolveRequest(item_id=item_b.id)) is None

    def test_size_token_matches_exact_name(self, db_session, ctx_a, make_item):
        make_item(ctx_a, "BTL-330", name="330")
        target = make_item(ctx_a, "BTL-500", name="500 ml")

        found = inventory_resolver.size_token(
            ctx_a, ResolveRequest(category="PACKAGING", type_hint="bottle 500")
        )
        assert found.id == target.id

    def test_size_token_ignores_partial_names(self, db_session, ctx_a, make_item):
        make_item(ctx_a, "BTL-5000", name="5000")
        assert inventory_resolver.size_token(
            ctx_a, ResolveRequest(category="PACKAGING", type_hint="500")
        ) is None

    def test_size_token_respects_category(self, db_session, ctx_a, make_item):
        make_item(ctx_a, "MALT-500", name="500", category="RAW_MATERIAL")
        assert inventory_resolver.size_token(
            ctx_a, ResolveRequest(category="PACKAGING", type_hint="500")
        ) is None

    def test_keyword_multilingual(self, db_session, ctx_a, make_item):
        make_item(ctx_a, "LBL", name="Label roll")
        bottles = make_item(ctx_a, "BTL-GE", name="ბოთლი ყავისფერი")

        found = inventory_resolver.keyword(
            ctx_a, ResolveRequest(category="PACKAGING", type_hint="bottle")
        )
        assert found.id == bottles.id

    def test_keyword_is_case_insensitive_for_cyrillic(self, db_session, ctx_a, make_item):
        caps = make_item(ctx_a, "CAP-RU", name="Крышка кроненпробка")

        found = inventory_resolver.keyword(
            ctx_a, ResolveRequest(category="PACKAGING", type_hint="крышки")
        )
        assert found.id == caps.id

    def test_keyword_prefers_the_head_noun(self, db_session, ctx_a, make_item):
        make_item(ctx_a, "BTL", name="Bottle amber")
        caps = make_item(ctx_a, "CAP", name="Crown caps")

        found = inventory_resolver.keyword(
            ctx_a, ResolveRequest(category="PACKAGING", type_hint="bottle cap")
        )
        assert found.id == caps.id

    def test_keyword_ignores_embedded_stems(self, db_session, ctx_a, make_item):
        make_item(ctx_a, "SCAN", name="Barcode scanner labels")
        make_item(ctx_a, "VULCAN", name="Vulcan shrink film")
        cans = make_item(ctx_a, "CAN-330", name="Cans 330 aluminium")

        found = inventory_resolver.keyword(
            ctx_a, ResolveRequest(category="PACKAGING", type_hint="can")
        )
        assert found.id == cans.id

    def test_keyword_needs_a_kind(self, db_session, ctx_a, make_item):
        make_item(ctx_a, "BTL", name="Bottle brown")
        assert inventory_resolver.keyword(
            ctx_a, ResolveRequest(category="PACKAGING", type_hint="brown")
        ) is None

    def test_keyword_orders_by_name(self, db_session, ctx_a, make_item):
        make_item(ctx_a, "B2", name="Bottle green")
        first = make_item(ctx_a, "B1", name="Bottle amber")

        found = inventory_resolver.keyword(
            ctx_a, ResolveRequest(category="PACKAGING", type_hint="bottle")
        )
        assert found.id == first.id

    def test_category_default_is_lowest_active_id(self, db_session, ctx_a, make_item):
        first = make_item(ctx_a, "P1", name="Shrink wrap")
        make_item(ctx_a, "P2", name="Cardboard tray")
        first.is_active = False
        db_session.commit()

        found = inventory_resolver.category_default(ctx_a, ResolveRequest(category="PACKAGING"))
        assert found.sku == "P2"


class TestResolveOrder:
    def test_explicit_id_wins(self, db_session, ctx_a, make_item):
        make_item(ctx_a, "BTL-500", name="500")
        chosen = make_item(ctx_a, "OTHER", name="Something else")

        found = resolve_item(ctx_a, item_id=chosen.id, category="PACKAGING", type_hint="bottle 500")
        assert found.id == chosen.id

    def test_size_token_before_keyword(self, db_session, ctx_a, make_item):
        make_item(ctx_a, "BTL-ANY", name="Bottle amber")
        exact = make_item(ctx_a, "BTL-500", name="500ml")

        found = resolve_item(ctx_a, category="PACKAGING", type_hint="bottle 500")
        assert found.id == exact.id

    def test_falls_back_to_category_default(self, db_session, ctx_a, make_item):
        first = make_item(ctx_a, "TRAY", name="Cardboard tray")

        found = resolve_item(ctx_a, category="PACKAGING", type_hint="keg 50")
        assert found.id == first.id

    def test_unknown_explicit_id_without_category(self, db_session, ctx_a, make_item):
        make_item(ctx_a, "CAPS")
        with pytest.raises(NotFoundError):
            resolve_item(ctx_a, item_id=99999)

    def test_unknown_explicit_id_with_category_falls_through(self, db_session, ctx_a, make_item):
        caps = make_item(ctx_a, "CAPS", name="Crown caps")
        found = resolve_item(ctx_a, item_id=99999, category="PACKAGING", type_hint="cap")
        assert found.id == caps.id

    def test_nothing_in_category(self, db_session, ctx_a, make_item):
        make_item(ctx_a, "MALT", category="RAW_MATERIAL")
        with pytest.raises(NotFoundError):
            resolve_item(ctx_a, category="PACKAGING", type_hint="bottle")

    def test_never_crosses_tenants(self, db_session, ctx_a, ctx_b, make_item):
        make_item(ctx_b, "CAPS", name="Crown caps")
        with pytest.raises(NotFoundError):
            resolve_item(ctx_a, category="PACKAGING", type_hint="cap")
