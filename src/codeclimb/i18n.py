from __future__ import annotations

STRINGS: dict[str, dict[str, str]] = {
    "start_failed": {"en": "Failed to start the quest.", "ja": "クエストの開始に失敗しました"},
    "pause_failed": {"en": "Failed to pause the quest.", "ja": "クエストの一時停止に失敗しました"},
    "resume_failed": {"en": "Failed to resume the quest.", "ja": "クエストの再開に失敗しました"},
    "progress_failed": {"en": "Failed to update progress.", "ja": "進捗の更新に失敗しました"},
    "load_failed": {"en": "Failed to load the quest.", "ja": "クエストの取得に失敗しました"},
    "conflict": {
        "en": "The quest was changed elsewhere. Reload it before continuing.",
        "ja": "クエストが別の場所で更新されました。再読み込みしてください",
    },
    "hours": {"en": "{h}h {m}m", "ja": "{h}時間{m}分"},
    "minutes": {"en": "{m}m {s}s", "ja": "{m}分{s}秒"},
    "seconds": {"en": "{s}s", "ja": "{s}秒"},
}

def t(key: str, lang: str) -> str:
    return STRINGS.get(key, {}).get(lang, STRINGS.get(key, {}).get("en", key))

def format_duration(seconds: int, lang: str = "en") -> str:
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return t("hours", lang).format(h=hours, m=minutes)
    if minutes:
        return t("minutes", lang).format(m=minutes, s=secs)
    return t("seconds", lang).format(s=secs)
