"""Tests for the legacy catalog import command."""
import json
from decimal import Decimal
from unittest.mock import patch

from app.migrate import import_products, main, normalize
from app.stores.json_file import JsonCatalogStore


def test_normalize_legacy_keys():
    fields = normalize({
        "id": 3,
        "nombre": "Alfajor",
        "precio": 1.2,
        "categoria": "dulces",
        "stock": 40,
        "imagen": "",
    })

    assert fields == {"name": "Alfajor", "price": 1.2, "category": "dulces", "stock": 40}


def test_import_products_skips_invalid_records(tmp_path):
    catalog = JsonCatalogStore(str(tmp_path / "productos.json"))

    imported, skipped = import_products([
        {"nombre": "Alfajor", "precio": 1.2, "stock": 40, "imagen": "/imagenes/1.jpg"},
        {"nombre": "Sin precio"},
        {"name": "Mate", "price": "15.00", "category": "bazar"},
    ], catalog)

    assert (imported, skipped) == (2, 1)
    products = sorted(catalog.list(), key=lambda p: p.id)
    assert [p.name for p in products] == ["Alfajor", "Mate"]
    assert products[0].price == Decimal("1.20")
    assert products[0].image_ref == "/imagenes/1.jpg"
    assert products[1].stock == 0


def test_main_imports_file(tmp_path):
    source = tmp_path / "legacy.json"
    source.write_text(json.dumps([{"nombre": "Yerba", "precio": 5, "stock": 3}]))
    catalog = JsonCatalogStore(str(tmp_path / "productos.json"))

    with patch("app.migrate.build_stores", return_value=(catalog, None)):
        assert main([str(source)]) == 0

    assert [p.name for p in catalog.list()] == ["Yerba"]


def test_main_rejects_unreadable_file(tmp_path):
    assert main([str(tmp_path / "missing.json")]) == 1

    not_a_list = tmp_path / "object.json"
    not_a_list.write_text(json.dumps({"nombre": "Solo"}))
    assert main([str(not_a_list)]) == 1
