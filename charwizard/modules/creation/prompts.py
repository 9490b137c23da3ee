"""Prompt builders for the character creation wizard.

All builders are pure: they read the registry and the draft and return text.
"""

from __future__ import annotations

from collections.abc import Mapping

from charwizard.modules.fields.progress import is_answered
from charwizard.modules.fields.registry import FieldRegistry

EMPTY_CONTEXT_TEXT = "まだ何も決まっていません"

CHOICE_SYSTEM_PROMPT = (
    "あなたはユーザーと一緒にオリジナルキャラクターを考える、明るくて気さくなアシスタントです。"
    "友達同士のような距離感で、魅力的なキャラクター設定を提案してください。"
)

CHOICE_ARCHETYPES: tuple[tuple[str, str], ...] = (
    ("王道パターン1", "安心感のある、親しみやすい定番の設定"),
    ("王道パターン2", "1とは違う切り口の定番の設定"),
    ("ギャップ萌え", "見た目と中身の差や意外な一面が光る設定"),
    ("パーソナライズ", "ここまでの設定から見て、このキャラに一番似合いそうな設定"),
)


def summarize_draft(registry: FieldRegistry, draft: Mapping[str, object] | None) -> str:
    """`label: value` pairs of answered fields in traversal order, comma separated."""
    values = draft if isinstance(draft, Mapping) else {}
    parts = [
        f"{item.label}: {str(values.get(item.key)).strip()}"
        for item in registry.all_fields()
        if is_answered(values.get(item.key))
    ]
    return ", ".join(parts) or EMPTY_CONTEXT_TEXT


def build_choice_prompt(registry: FieldRegistry, field_key: str, draft: Mapping[str, object] | None) -> str:
    target = registry.field_by_key(field_key)
    archetype_lines = "\n".join(
        f"{index}. {name}: {description}" for index, (name, description) in enumerate(CHOICE_ARCHETYPES, start=1)
    )
    template_lines = "\n".join(f"選択肢{index}: [具体的な内容]" for index in range(1, len(CHOICE_ARCHETYPES) + 1))
    return (
        "友達と一緒にキャラクターを妄想しながら作っています。\n\n"
        f"【これまでの設定】{summarize_draft(registry, draft)}\n\n"
        f"【今回決める項目】{target.label}（{target.key}）\n\n"
        f"次の{len(CHOICE_ARCHETYPES)}タイプの選択肢をひとつずつ提案してください。\n"
        f"{archetype_lines}\n\n"
        "各選択肢は10〜15文字くらいで短く、わくわくする言い方にしてください。\n"
        "友達とおしゃべりしているような楽しい口調でお願いします。\n\n"
        "必ず次の形式だけで答えてください:\n"
        f"{template_lines}\n"
        "コメント: [選択肢についてのひとこと（1〜2行）]"
    )


def build_reaction_prompt(
    registry: FieldRegistry,
    previous_label: str,
    chosen_value: str,
    next_label: str,
    draft: Mapping[str, object] | None,
    *,
    max_chars: int = 150,
) -> str:
    return (
        "友達と一緒にキャラクターを妄想しながら作っています。\n\n"
        f"【現在の設定】{summarize_draft(registry, draft)}\n\n"
        f"ユーザーは「{previous_label}」に「{chosen_value}」を選びました。\n\n"
        "次のポイントをおさえて、自然でセンスのある反応を返してください。\n"
        f"1. 「{chosen_value}」について具体的でその子らしいコメントをする\n"
        "2. キャラクターの魅力やおもしろさを伝える\n"
        "3. これまでの設定との組み合わせで生まれるおもしろさがあれば触れる\n"
        f"4. 最後に「{next_label}」の話題へ自然につなげる\n"
        "5. 友達同士の会話のような口調で、絵文字をほどよく使う\n\n"
        f"{max_chars}文字以内で、毎回同じ言い回しにならないようにしてください。"
    )


def build_celebration_prompt(
    registry: FieldRegistry,
    draft: Mapping[str, object] | None,
    *,
    max_chars: int = 150,
) -> str:
    return (
        "キャラクターがついに完成しました！\n\n"
        f"【完成したキャラクター】\n{summarize_draft(registry, draft)}\n\n"
        f"このキャラクターの魅力や、設定どうしのおもしろい組み合わせを具体的に挙げながら、"
        f"完成をお祝いするメッセージを{max_chars}文字以内で書いてください。\n\n"
        "1. 個性や魅力を具体的にほめる\n"
        "2. 設定の組み合わせから生まれる意外性やおもしろさに触れる\n"
        "3. 完成した達成感を一緒に味わう\n"
        "4. 友達同士の会話のような口調で、絵文字をほどよく使う"
    )
