from __future__ import annotations

from pathlib import Path

from assetfinish.utils.env import FinishConfig, load_config


def test_defaults() -> None:
    config = load_config({})

    assert config == FinishConfig()
    assert config.manifest_path == Path("public/assets/manifest.json")
    assert config.concurrent is False
    assert config.workers >= 1


def test_reads_environment() -> None:
    config = load_config(
        {
            "ASSETFINISH_ROOT": "/srv/assets",
            "ASSETFINISH_ENV": " Production ",
            "ASSETFINISH_CONCURRENT": "yes",
            "ASSETFINISH_WORKERS": "0",
            "ASSETFINISH_SKIP_NODE_MINIFIER": "1",
            "ASSETFINISH_SKIP_MINIFICATION": "vendor.js, locales/ar.js,,",
            "ASSETFINISH_FALLBACK_PATH": "/mnt/fallback",
            "ASSETFINISH_CDN_URL": "https://cdn.example.com/",
            "MAXMIND_LICENSE_KEY": "abc",
        }
    )

    assert config.root == Path("/srv/assets")
    assert config.run_mode == "production"
    assert config.concurrent is True
    assert config.workers == 1
    assert config.force_in_process is True
    assert config.skip_minification == {"vendor.js", "locales/ar.js"}
    assert config.fallback_path == Path("/mnt/fallback")
    assert config.cdn_url == "https://cdn.example.com"
    assert config.geo_license_key == "abc"


def test_false_flags() -> None:
    config = load_config({"ASSETFINISH_CONCURRENT": "0", "ASSETFINISH_SKIP_NODE_MINIFIER": "no"})

    assert config.concurrent is False
    assert config.force_in_process is False
