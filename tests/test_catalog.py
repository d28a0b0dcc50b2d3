import pandas as pd
import pytest

from inventory_ai.catalog import build_vocabulary, catalog_from_df, load_catalog, normalize_catalog_df
from inventory_ai.config import CatalogItem


def test_load_catalog_reads_base_snapshot():
    items = load_catalog()
    assert len(items) == 10
    assert all(isinstance(i, CatalogItem) for i in items)
    assert len({i.id for i in items}) == len(items)

    by_name = {i.name: i for i in items}
    assert by_name["Dining Chair"].weight_kg == 9
    assert by_name["Wardrobe"].category == "storage"


def test_normalize_catalog_df_handles_messy_columns():
    raw = pd.DataFrame(
        {
            "Item Name": ["Desk", "", "Lamp", "Desk copy"],
            "Weight (kg)": ["35 kg", "10", "-1", "12"],
            "Category": ["Office", "misc", "misc", "not-a-category"],
            "ID": [1, 2, 3, 1],
        }
    )
    df = normalize_catalog_df(raw)

    # empty name and non-positive weight dropped; duplicate id keeps first row
    assert list(df["name"]) == ["Desk"]
    assert df.iloc[0]["weight"] == 35.0
    assert df.iloc[0]["category"] == "office"


def test_normalize_catalog_df_defaults_missing_id_and_category():
    df = normalize_catalog_df(pd.DataFrame({"name": ["Crate"], "weight": [4]}))
    items = catalog_from_df(df)
    assert items[0].id == 1
    assert items[0].category == "misc"


def test_normalize_catalog_df_requires_name_and_weight():
    with pytest.raises(KeyError):
        normalize_catalog_df(pd.DataFrame({"name": ["Crate"]}))


def test_vocabulary_puts_full_names_before_keywords():
    catalog = load_catalog()
    vocab = build_vocabulary(catalog)
    keywords = [v.keyword for v in vocab]

    names = [i.name.lower() for i in catalog]
    assert keywords[: len(names)] == names
    assert keywords.index("dining chair") < keywords.index("chair")


def test_vocabulary_binds_keywords_to_first_containing_item():
    vocab = {v.keyword: v.item.name for v in build_vocabulary(load_catalog())}
    assert vocab["chair"] == "Armchair"
    assert vocab["sofa"] == "Two Seater Sofa"
    assert vocab["tv"] == "TV Stand"
    # nothing in the catalog contains these
    assert "box" not in vocab
    assert "desk" not in vocab
