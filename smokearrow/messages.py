"""Localized display strings."""

from .config import CONFIG

MESSAGES = {
    "ja": {
        "placeholder": "--",
        "zone_near": "すぐ近く",
        "zone_walkable": "徒歩圏内",
        "zone_hesitant": "少し遠い",
        "zone_far": "かなり遠い",
        "zone_out_of_range": "徒歩圏外",
        "zone_out_of_range_long": "徒歩圏外",
        "status_permission_not_determined": "位置情報を許可してください",
        "status_permission_denied": "位置情報が許可されていません（設定で変更できます）",
        "status_locating": "測位中…",
        "status_searching": "検索中…",
        "status_low_accuracy": "測位精度が低い可能性があります",
        "status_not_found": "付近に喫煙所が見つかりません（最大5km）",
        "status_error": "検索に失敗しました",
        "cafe_fallback_notice": "カフェも候補に追加しています",
        "smoking_spot": "喫煙所",
        "cafe": "喫煙可能なカフェ",
        "cafe_named": "喫煙可能なカフェ：{name}",
    },
    "en": {
        "placeholder": "--",
        "zone_near": "Very close",
        "zone_walkable": "Walkable",
        "zone_hesitant": "A bit far",
        "zone_far": "Far",
        "zone_out_of_range": "Out of walking range",
        "zone_out_of_range_long": "Out of walking range",
        "status_permission_not_determined": "Please allow location access",
        "status_permission_denied": "Location access is not allowed (you can change this in Settings)",
        "status_locating": "Locating…",
        "status_searching": "Searching…",
        "status_low_accuracy": "Location accuracy may be low",
        "status_not_found": "No smoking spots found nearby (up to 5km)",
        "status_error": "Search failed",
        "cafe_fallback_notice": "Cafes are included as candidates",
        "smoking_spot": "Smoking area",
        "cafe": "Smoking-friendly cafe",
        "cafe_named": "Smoking-friendly cafe: {name}",
    },
}


def message(key: str, locale: str = None, **kwargs) -> str:
    """Look up a display string, falling back to Japanese for unknown locales"""
    table = MESSAGES.get(locale or CONFIG["locale"], MESSAGES["ja"])
    text = table[key]
    return text.format(**kwargs) if kwargs else text
