import pytest

from charwizard.modules.fields.registry import (
    FieldCategory,
    FieldDefinition,
    FieldRegistry,
    UnknownFieldError,
    build_default_registry,
)


def test_default_registry_has_twenty_fields_five_per_category() -> None:
    registry = build_default_registry()
    assert len(registry) == 20
    for category in FieldCategory:
        assert len(registry.fields_in(category)) == 5


def test_traversal_order_is_category_then_declared_order() -> None:
    registry = build_default_registry()
    keys = registry.keys()
    assert keys[:5] == ("name", "age", "gender", "height", "birthday")
    assert keys[5] == "hairColor"
    assert keys[10] == "basicPersonality"
    assert keys[15] == "occupation"
    assert keys[-1] == "favorites"
    assert [item.order for item in registry.all_fields()] == list(range(20))


def test_next_field_after() -> None:
    registry = build_default_registry()
    assert registry.next_field_after("name").key == "age"
    assert registry.next_field_after("birthday").key == "hairColor"
    assert registry.next_field_after("favorites") is None


def test_unknown_keys_raise() -> None:
    registry = build_default_registry()
    with pytest.raises(UnknownFieldError):
        registry.field_by_key("weapon")
    with pytest.raises(UnknownFieldError):
        registry.next_field_after("")
    assert registry.label_for("weapon") is None
    assert "weapon" not in registry


def test_gender_is_select_with_fixed_options() -> None:
    gender = build_default_registry().field_by_key("gender")
    assert gender.input_type == "select"
    assert gender.options == ("男性", "女性", "その他", "秘密")
    assert gender.to_dict()["options"] == ["男性", "女性", "その他", "秘密"]


def test_catalog_groups_fields_by_category() -> None:
    catalog = build_default_registry().catalog()
    assert [group["category"] for group in catalog] == ["basic", "appearance", "personality", "background"]
    assert catalog[0]["label"] == "基本情報"
    assert [item["key"] for item in catalog[3]["fields"]][-1] == "favorites"


def test_registry_rejects_duplicate_keys() -> None:
    item = FieldDefinition(key="name", label="名前", category=FieldCategory.BASIC, order=0)
    with pytest.raises(ValueError):
        FieldRegistry([item, item])
