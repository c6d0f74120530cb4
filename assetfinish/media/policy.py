# assetfinish/media/policy.py
from typing import AbstractSet, Optional

LOCALE_DIR = "locales"


def locale_of(asset_path: str) -> Optional[str]:
    """
    Return the locale code of a per-locale asset, else None.

      "locales/pt_BR.js"           -> "pt_BR"
      "plugins/poll/locales/fr.js" -> "fr"
      "app.js"                     -> None
    """
    parts = [p for p in asset_path.split("/") if p]
    for i, part in enumerate(parts[:-1]):
        if part == LOCALE_DIR:
            code = parts[i + 1]
            if code.endswith(".js"):
                code = code[: -len(".js")]
            return code or None
    return None


def max_compress(asset_path: str, skip_list: AbstractSet[str], locales: AbstractSet[str]) -> bool:
    if asset_path in skip_list:
        return False
    code = locale_of(asset_path)
    if code is None:
        return True
    return code in locales


__all__ = ["locale_of", "max_compress"]
