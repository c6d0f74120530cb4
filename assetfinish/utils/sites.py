# assetfinish/utils/sites.py
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Set

from assetfinish.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Site:
    name: str
    default_locale: str


class SiteRegistry:
    """Read-only view over the tenants served from this asset tree."""

    def __init__(self, sites: Optional[List[Site]] = None):
        self.sites = list(sites or [])

    @classmethod
    def from_file(cls, path: Optional[Path]) -> "SiteRegistry":
        if path is None or not path.exists():
            return cls()
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{path}: invalid JSON ({e})") from e
        if not isinstance(raw, list):
            raise ConfigurationError(f"{path}: expected a list of sites")

        sites = []
        for item in raw:
            locale = (item.get("default_locale") or "").strip() if isinstance(item, dict) else ""
            if not locale:
                logger.warning("site entry without default_locale ignored: %r", item)
                continue
            sites.append(Site(name=item.get("name") or "default", default_locale=locale))
        return cls(sites)

    def default_locales(self) -> Set[str]:
        return {s.default_locale for s in self.sites}
