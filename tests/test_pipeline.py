from __future__ import annotations

import dataclasses
import json

import pytest

from assetfinish.pipeline import Pipeline, geo_refresh_for
from assetfinish.utils.errors import CompressorFailed, ConfigurationError
from assetfinish.utils.sites import Site, SiteRegistry


class RecordingRefresh:
    def __init__(self):
        self.calls = []

    def start(self):
        self.calls.append("start")
        return self

    def join(self, timeout=None):
        self.calls.append("join")


def test_refuses_non_production_mode(config, asset_root) -> None:
    before = (asset_root / "manifest.json").read_text()
    geo = RecordingRefresh()

    with pytest.raises(ConfigurationError):
        Pipeline(dataclasses.replace(config, run_mode="development"), geo_refresh=geo).run()

    assert geo.calls == []
    assert not (asset_root / "app-abc123.js.gz").exists()
    assert (asset_root / "manifest.json").read_text() == before


def test_full_run_persists_manifest(config, asset_root) -> None:
    sites = SiteRegistry([Site("default", "en"), Site("forum-fr", "fr")])

    stats = Pipeline(config, sites=sites).run()

    assert (stats.processed, stats.max_compressed) == (3, 3)
    saved = json.loads((asset_root / "manifest.json").read_text())
    for logical in ("app.js", "locales/en.js", "locales/fr.js"):
        out = asset_root / saved[logical]["output_file"]
        assert saved[logical]["size"] == out.stat().st_size
        assert saved[logical]["mtime"] != "2020-01-01T00:00:00+00:00"
    assert (asset_root / "locales/_fr-789abc.js").exists()


def test_locales_always_include_default(config) -> None:
    assert Pipeline(config, sites=SiteRegistry()).locales() == {"en"}
    assert Pipeline(config, sites=SiteRegistry([Site("a", "de")])).locales() == {"en", "de"}


def test_fatal_failure_skips_save_but_joins_geo(config, asset_root, bin_dir) -> None:
    before = (asset_root / "manifest.json").read_text()
    geo = RecordingRefresh()
    broken = dataclasses.replace(config, gzip_bin=str(bin_dir / "fail"))

    with pytest.raises(CompressorFailed):
        Pipeline(broken, geo_refresh=geo).run()

    assert (asset_root / "manifest.json").read_text() == before
    assert geo.calls == ["start", "join"]


def test_mirror_copies_tree(config, tmp_path) -> None:
    mirror = tmp_path / "fallback"
    geo = RecordingRefresh()

    Pipeline(dataclasses.replace(config, fallback_path=mirror), geo_refresh=geo).run()

    assert (mirror / "manifest.json").exists()
    assert (mirror / "app-abc123.js.br").exists()
    assert (mirror / "locales" / "_en-def456.js").exists()
    assert geo.calls == ["start", "join"]


def test_mirror_failure_is_not_fatal(config, tmp_path, caplog) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    pipeline = Pipeline(dataclasses.replace(config, fallback_path=blocker / "assets"))
    stats = pipeline.run()

    assert stats.processed == 3
    assert "failed to copy assets to fallback path" in caplog.text


def test_purges_cache_dir(config, tmp_path) -> None:
    cache = tmp_path / "tmp" / "cache"
    cache.mkdir(parents=True)
    (cache / "stale").write_text("x")

    Pipeline(dataclasses.replace(config, cache_dir=cache)).run()

    assert cache.is_dir()
    assert list(cache.iterdir()) == []


def test_geo_refresh_needs_license_key(config, tmp_path) -> None:
    assert geo_refresh_for(config) is None

    refresh = geo_refresh_for(dataclasses.replace(config, geo_license_key="k", geo_dir=tmp_path))
    assert refresh.license_key == "k"
    assert refresh.dest_dir == tmp_path


def test_rerun_after_failure_records_finished_files(config, asset_root, bin_dir) -> None:
    picky = bin_dir / "picky-gzip"
    picky.write_text('#!/bin/sh\nfor a; do f="$a"; done\ncase "$f" in */en-*) exit 3 ;; esac\ncat "$f"\n')
    picky.chmod(0o755)

    with pytest.raises(CompressorFailed):
        Pipeline(dataclasses.replace(config, gzip_bin=str(picky))).run()
    assert (asset_root / "_app-abc123.js").exists()
    assert not (asset_root / "locales" / "_en-def456.js").exists()

    stats = Pipeline(config).run()

    assert stats.skipped == 1
    saved = json.loads((asset_root / "manifest.json").read_text())
    for logical in ("app.js", "locales/en.js", "locales/fr.js"):
        out = asset_root / saved[logical]["output_file"]
        assert saved[logical]["size"] == out.stat().st_size
