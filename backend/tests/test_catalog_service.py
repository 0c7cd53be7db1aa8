import json

import pytest

from conftest import RecordingGateway, make_product
from barstock.services import catalog_service
from barstock.services.cache_service import CatalogCache
from barstock.services.catalog_service import CatalogUnavailableError
from barstock.validation import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def cache(tmp_path):
    return CatalogCache(str(tmp_path / "cache" / "catalog.json"))


def _store():
    return RecordingGateway({
        "categories": [{"id": 1, "name": "Spirits", "order_index": 2}, {"id": 2, "name": "Beer", "order_index": None}],
        "products": [
            make_product(10, category_id=1, order_index=2),
            make_product(11, category_id=2, order_index=None),
            make_product(12, category_id=99, order_index=1),
        ],
    })


class TestLoadCatalog:

    def test_enriches_and_caches(self, cache):
        snapshot = catalog_service.load_catalog(gateway=_store(), cache=cache)

        assert snapshot.stale is False
        by_id = {p["id"]: p for p in snapshot.products}
        assert by_id[10]["category_name"] == "Spirits"
        assert by_id[10]["category_order_index"] == 2
        assert by_id[11]["category_order_index"] == catalog_service.FALLBACK_ORDER_INDEX
        assert by_id[12]["category_name"] == catalog_service.UNCATEGORIZED
        # order_index ascending, NULL last
        assert [p["id"] for p in snapshot.products] == [12, 10, 11]

        with open(cache.path, encoding="utf-8") as fh:
            saved = json.load(fh)
        assert [p["id"] for p in saved["products"]] == [12, 10, 11]
        assert saved["saved_at"] == snapshot.saved_at

    def test_falls_back_to_cache(self, cache):
        catalog_service.load_catalog(gateway=_store(), cache=cache)
        down = _store()
        down.fail_on("query")

        snapshot = catalog_service.load_catalog(gateway=down, cache=cache)

        assert snapshot.stale is True
        assert len(snapshot.products) == 3
        assert snapshot.categories[0]["name"] == "Spirits"

    def test_no_cache_raises(self, cache):
        down = _store()
        down.fail_on("query")
        with pytest.raises(CatalogUnavailableError):
            catalog_service.load_catalog(gateway=down, cache=cache)

    def test_last_write_wins(self, cache):
        catalog_service.load_catalog(gateway=_store(), cache=cache)
        smaller = RecordingGateway({"categories": [], "products": [make_product(5)]})
        catalog_service.load_catalog(gateway=smaller, cache=cache)

        assert [p["id"] for p in cache.load()["products"]] == [5]

    def test_corrupt_cache_is_ignored(self, cache, tmp_path):
        (tmp_path / "cache").mkdir()
        with open(cache.path, "w", encoding="utf-8") as fh:
            fh.write("{not json")
        assert cache.load() is None

    def test_against_database(self, gateway, catalog, app):
        snapshot = catalog_service.load_catalog(gateway=gateway)

        assert [c["name"] for c in snapshot.categories] == ["Spirits", "Beer"]
        assert {p["name"] for p in snapshot.products} == {"Vodka", "Gin", "Rum", "Lager"}
        assert CatalogCache(app.config["LOCAL_CACHE_PATH"]).has_products()


class TestVisibility:

    PRODUCTS = [
        make_product(1),
        make_product(2, is_frozen=True, visible_to_bar1=False, visible_to_bar2=False),
        make_product(3, is_frozen=True, visible_to_bar1=False, visible_to_bar2=True),
        make_product(4, visible_to_bar2=False),
    ]

    def test_manager_sees_everything(self):
        result = catalog_service.visible_products(self.PRODUCTS, ("bar1", "bar2", "cold_room"))
        assert len(result) == 4

    def test_bar1(self):
        result = catalog_service.visible_products(self.PRODUCTS, ("bar1", "cold_room"))
        assert [p["id"] for p in result] == [1, 4]

    def test_bar2(self):
        result = catalog_service.visible_products(self.PRODUCTS, ("bar2",))
        assert [p["id"] for p in result] == [1]


class TestCreate:

    def test_create_category_appends(self, gateway, catalog):
        category = catalog_service.create_category("  Wine ", gateway=gateway)
        assert category["name"] == "Wine"
        assert category["order_index"] == 3

    def test_duplicate_category_is_conflict(self, gateway, catalog):
        with pytest.raises(ConflictError):
            catalog_service.create_category("spirits", gateway=gateway)

    def test_blank_category_name(self, fake_gateway):
        with pytest.raises(ValidationError):
            catalog_service.create_category("   ", gateway=fake_gateway)

    def test_create_product(self, gateway, catalog):
        product = catalog_service.create_product(catalog["categories"]["beer"], "Stout", "0.5", gateway=gateway)

        assert product["is_frozen"] is False
        assert product["visible_to_bar1"] is True and product["visible_to_bar2"] is True
        assert (product["bar1"], product["bar2"], product["cold_room"]) == (0, 0, 0)
        assert product["order_index"] == 2

    def test_create_product_unknown_category(self, gateway, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.create_product(404, "Stout", gateway=gateway)
