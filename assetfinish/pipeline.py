# assetfinish/pipeline.py
import logging
import shutil
from pathlib import Path
from typing import Optional, Set

from assetfinish.geo.refresh_geoip import GeoDatabaseRefresh
from assetfinish.media.jobs import JobScheduler, RunStats
from assetfinish.media.manifest import ManifestStore
from assetfinish.media.minify import Minifier, select_minifier
from assetfinish.utils.env import FinishConfig
from assetfinish.utils.errors import ConfigurationError
from assetfinish.utils.sites import SiteRegistry

logger = logging.getLogger(__name__)

PRODUCTION_MODES = {"production", "profile"}
DEFAULT_LOCALE = "en"


class Pipeline:
    """
    Finish an already-built asset tree in place.

    Order: run-mode check, cache purge, backend selection, locales,
    geo refresh start, jobs, manifest save, mirror, geo refresh join.
    """

    def __init__(
        self,
        config: FinishConfig,
        sites: Optional[SiteRegistry] = None,
        geo_refresh: Optional[GeoDatabaseRefresh] = None,
        minifier: Optional[Minifier] = None,
    ):
        self.config = config
        self.sites = sites if sites is not None else SiteRegistry.from_file(config.sites_file)
        self.geo_refresh = geo_refresh
        self.minifier = minifier
        self.manifest = ManifestStore(config.manifest_path)

    def check_run_mode(self) -> None:
        if self.config.run_mode not in PRODUCTION_MODES:
            raise ConfigurationError(
                f"refusing to finish assets in '{self.config.run_mode}' mode; "
                f"set ASSETFINISH_ENV to one of {sorted(PRODUCTION_MODES)}"
            )

    def purge_caches(self) -> None:
        cache = self.config.cache_dir
        if cache is None:
            return
        if cache.exists():
            shutil.rmtree(cache)
            logger.info("purged cache %s", cache)
        cache.mkdir(parents=True, exist_ok=True)

    def locales(self) -> Set[str]:
        return {DEFAULT_LOCALE} | self.sites.default_locales()

    def mirror(self) -> bool:
        target = self.config.fallback_path
        if target is None:
            return False
        try:
            shutil.copytree(self.config.root, target, dirs_exist_ok=True)
        except (OSError, shutil.Error):
            logger.exception("failed to copy assets to fallback path %s", target)
            return False
        logger.info("copied assets to fallback path %s", target)
        return True

    def run(self) -> RunStats:
        self.check_run_mode()
        self.purge_caches()
        minifier = self.minifier or select_minifier(self.config)
        locales = self.locales()

        if self.geo_refresh is not None:
            self.geo_refresh.start()
        try:
            self.manifest.load()
            scheduler = JobScheduler(
                root=self.config.root,
                manifest=self.manifest,
                minifier=minifier,
                skip_list=self.config.skip_minification,
                locales=locales,
                concurrent=self.config.concurrent,
                workers=self.config.workers,
                gzip_bin=self.config.gzip_bin,
                brotli_bin=self.config.brotli_bin,
            )
            stats = scheduler.run()
            self.manifest.save()
            logger.info(
                "finished %d file(s), %d max compressed, %d skipped",
                stats.processed, stats.max_compressed, stats.skipped,
            )
            self.mirror()
            return stats
        finally:
            if self.geo_refresh is not None:
                logger.info("waiting for geo database refresh to finish")
                self.geo_refresh.join()


def geo_refresh_for(config: FinishConfig) -> Optional[GeoDatabaseRefresh]:
    if not config.geo_license_key:
        return None
    dest = config.geo_dir or Path("vendor/data")
    return GeoDatabaseRefresh(dest, config.geo_license_key)
