from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal


class UnknownFieldError(ValueError):
    """Raised when a field key is not part of the catalog."""

    def __init__(self, key: object):
        self.key = str(key or "")
        super().__init__(f"Unknown field: {self.key}")


class FieldCategory(str, Enum):
    BASIC = "basic"
    APPEARANCE = "appearance"
    PERSONALITY = "personality"
    BACKGROUND = "background"


CATEGORY_ORDER: tuple[FieldCategory, ...] = (
    FieldCategory.BASIC,
    FieldCategory.APPEARANCE,
    FieldCategory.PERSONALITY,
    FieldCategory.BACKGROUND,
)

CATEGORY_LABELS: dict[FieldCategory, str] = {
    FieldCategory.BASIC: "基本情報",
    FieldCategory.APPEARANCE: "外見",
    FieldCategory.PERSONALITY: "性格",
    FieldCategory.BACKGROUND: "背景",
}

FieldInputType = Literal["text", "number", "select"]


@dataclass(frozen=True, slots=True)
class FieldDefinition:
    key: str
    label: str
    category: FieldCategory
    order: int
    input_type: FieldInputType = "text"
    options: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        out: dict[str, object] = {
            "key": self.key,
            "label": self.label,
            "category": self.category.value,
            "order": self.order,
            "type": self.input_type,
        }
        if self.options:
            out["options"] = list(self.options)
        return out


# (key, label, input_type, options) per category, in traversal order.
DEFAULT_FIELD_CATALOG: dict[FieldCategory, tuple[tuple[str, str, FieldInputType, tuple[str, ...]], ...]] = {
    FieldCategory.BASIC: (
        ("name", "名前", "text", ()),
        ("age", "年齢", "number", ()),
        ("gender", "性別", "select", ("男性", "女性", "その他", "秘密")),
        ("height", "身長", "text", ()),
        ("birthday", "誕生日", "text", ()),
    ),
    FieldCategory.APPEARANCE: (
        ("hairColor", "髪色", "text", ()),
        ("eyeColor", "瞳色", "text", ()),
        ("bodyType", "体型", "text", ()),
        ("features", "特徴", "text", ()),
        ("clothing", "服装", "text", ()),
    ),
    FieldCategory.PERSONALITY: (
        ("basicPersonality", "基本性格", "text", ()),
        ("trait1", "性格特徴1", "text", ()),
        ("trait2", "性格特徴2", "text", ()),
        ("speechStyle", "口調", "text", ()),
        ("hobbies", "趣味", "text", ()),
    ),
    FieldCategory.BACKGROUND: (
        ("occupation", "職業", "text", ()),
        ("birthplace", "出身地", "text", ()),
        ("family", "家族構成", "text", ()),
        ("skills", "特技", "text", ()),
        ("favorites", "好きなもの", "text", ()),
    ),
}


class FieldRegistry:
    """Immutable, ordered field catalog. Build once and pass it around."""

    def __init__(self, fields: Iterable[FieldDefinition]):
        ordered = tuple(sorted(fields, key=lambda item: item.order))
        if not ordered:
            raise ValueError("field registry requires at least one field")
        seen: set[str] = set()
        for item in ordered:
            if item.key in seen:
                raise ValueError(f"duplicate field key: {item.key}")
            seen.add(item.key)
        self._fields = ordered
        self._by_key = {item.key: item for item in ordered}
        self._position = {item.key: index for index, item in enumerate(ordered)}

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self._by_key

    def all_fields(self) -> tuple[FieldDefinition, ...]:
        return self._fields

    def keys(self) -> tuple[str, ...]:
        return tuple(item.key for item in self._fields)

    def first_field(self) -> FieldDefinition:
        return self._fields[0]

    def field_by_key(self, key: str) -> FieldDefinition:
        found = self._by_key.get(str(key or ""))
        if found is None:
            raise UnknownFieldError(key)
        return found

    def position(self, key: str) -> int:
        return self._position[self.field_by_key(key).key]

    def next_field_after(self, key: str) -> FieldDefinition | None:
        index = self.position(key) + 1
        if index >= len(self._fields):
            return None
        return self._fields[index]

    def label_for(self, key: str) -> str | None:
        found = self._by_key.get(str(key or ""))
        return found.label if found else None

    def fields_in(self, category: FieldCategory) -> tuple[FieldDefinition, ...]:
        return tuple(item for item in self._fields if item.category == category)

    def catalog(self) -> list[dict]:
        return [
            {
                "category": category.value,
                "label": CATEGORY_LABELS[category],
                "fields": [item.to_dict() for item in self.fields_in(category)],
            }
            for category in CATEGORY_ORDER
            if self.fields_in(category)
        ]


def build_default_registry() -> FieldRegistry:
    definitions: list[FieldDefinition] = []
    for category in CATEGORY_ORDER:
        for key, label, input_type, options in DEFAULT_FIELD_CATALOG[category]:
            definitions.append(
                FieldDefinition(
                    key=key,
                    label=label,
                    category=category,
                    order=len(definitions),
                    input_type=input_type,
                    options=options,
                )
            )
    return FieldRegistry(definitions)
