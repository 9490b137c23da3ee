from __future__ import annotations

WELCOME_MESSAGE = "キャラクター作成を開始しました！まずは名前から決めていきましょう〜✨"
NO_SESSION_MESSAGE = "セッションが見つかりません。新しいキャラクター作成を開始してください。"
RESET_MESSAGE = "セッションをリセットしました。新しいキャラクター作成を開始できます。"
UNNAMED_CHARACTER = "名無し"


def reaction_fallback(chosen_value: str, next_label: str) -> str:
    return f"「{chosen_value}」いいですね✨ 次は「{next_label}」を決めましょう！"


def celebration_fallback() -> str:
    return "🎉 キャラクター設定が完成しました！素敵なキャラクターができましたね✨"


def static_acknowledgement(chosen_value: str) -> str:
    return f"「{chosen_value}」素敵な選択ですね✨"
