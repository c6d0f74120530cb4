# assetfinish/utils/env.py
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import FrozenSet, Mapping, Optional

from dotenv import load_dotenv


# Load .env if present (local runs). On build hosts, use the real environment.
load_dotenv(dotenv_path=Path(".env"))


TRUTHY = {"1", "true", "yes", "on"}


def _flag(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in TRUTHY


def _opt(env: Mapping[str, str], name: str) -> Optional[str]:
    raw = (env.get(name) or "").strip()
    return raw or None


def _csv(raw: Optional[str]) -> FrozenSet[str]:
    return frozenset(p.strip() for p in (raw or "").split(",") if p.strip())


@dataclass(frozen=True)
class FinishConfig:
    root: Path = Path("public/assets")
    manifest_name: str = "manifest.json"
    run_mode: str = "development"
    concurrent: bool = False
    workers: int = field(default_factory=lambda: os.cpu_count() or 1)
    force_in_process: bool = False
    minifier_path: Optional[str] = None
    skip_minification: FrozenSet[str] = frozenset()
    fallback_path: Optional[Path] = None
    cdn_url: str = ""
    cache_dir: Optional[Path] = None
    sites_file: Optional[Path] = None
    gzip_bin: str = "gzip"
    brotli_bin: str = "brotli"
    geo_license_key: Optional[str] = None
    geo_dir: Optional[Path] = None

    @property
    def manifest_path(self) -> Path:
        return self.root / self.manifest_name


def load_config(environ: Optional[Mapping[str, str]] = None) -> FinishConfig:
    """
    Build a FinishConfig from ASSETFINISH_* variables.
    Unset variables fall back to the dataclass defaults.
    """
    env = os.environ if environ is None else environ
    defaults = FinishConfig()

    workers = defaults.workers
    if _opt(env, "ASSETFINISH_WORKERS"):
        workers = max(1, int(env["ASSETFINISH_WORKERS"]))

    fallback = _opt(env, "ASSETFINISH_FALLBACK_PATH")
    cache_dir = _opt(env, "ASSETFINISH_CACHE_DIR")
    sites_file = _opt(env, "ASSETFINISH_SITES_FILE")
    geo_dir = _opt(env, "ASSETFINISH_GEO_DIR")

    return FinishConfig(
        root=Path(env.get("ASSETFINISH_ROOT") or defaults.root),
        manifest_name=env.get("ASSETFINISH_MANIFEST") or defaults.manifest_name,
        run_mode=(env.get("ASSETFINISH_ENV") or defaults.run_mode).strip().lower(),
        concurrent=_flag(env, "ASSETFINISH_CONCURRENT"),
        workers=workers,
        force_in_process=_flag(env, "ASSETFINISH_SKIP_NODE_MINIFIER"),
        minifier_path=_opt(env, "ASSETFINISH_MINIFIER"),
        skip_minification=_csv(env.get("ASSETFINISH_SKIP_MINIFICATION")),
        fallback_path=Path(fallback) if fallback else None,
        cdn_url=(env.get("ASSETFINISH_CDN_URL") or "").rstrip("/"),
        cache_dir=Path(cache_dir) if cache_dir else None,
        sites_file=Path(sites_file) if sites_file else None,
        gzip_bin=env.get("ASSETFINISH_GZIP") or defaults.gzip_bin,
        brotli_bin=env.get("ASSETFINISH_BROTLI") or defaults.brotli_bin,
        geo_license_key=_opt(env, "MAXMIND_LICENSE_KEY"),
        geo_dir=Path(geo_dir) if geo_dir else None,
    )


__all__ = ["FinishConfig", "load_config"]
