#!/usr/bin/env python3
# assetfinish/precompile.py
import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from assetfinish.pipeline import Pipeline, geo_refresh_for
from assetfinish.utils.env import load_config
from assetfinish.utils.errors import PipelineError, SubprocessFailed
from assetfinish.utils.logs import configure_logging

logger = logging.getLogger("assetfinish")


def parse_cli(argv=None):
    parser = argparse.ArgumentParser(
        description="Minify, source-map and gzip/brotli compress built scripts listed in the asset manifest."
    )
    parser.add_argument("--root", type=Path, help="Asset output root (default: $ASSETFINISH_ROOT or public/assets).")
    parser.add_argument("--concurrent", action="store_true", help="Compress files on a worker pool.")
    parser.add_argument("--workers", type=int, help="Worker pool size (default: CPU count).")
    parser.add_argument("--skip-node-minifier", action="store_true",
                        help="Always use the in-process minifier, even when uglifyjs/terser is installed.")
    parser.add_argument("--minifier", type=str, help="Path or name of the external minifier binary.")
    parser.add_argument("--fallback-path", type=Path, help="Mirror the finished tree here (best effort).")
    parser.add_argument("--no-geo", action="store_true", help="Do not refresh the geo database.")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_cli(argv)
    configure_logging(args.verbose)

    config = load_config()
    overrides = {}
    if args.root:
        overrides["root"] = args.root
    if args.concurrent:
        overrides["concurrent"] = True
    if args.workers:
        overrides["workers"] = max(1, args.workers)
    if args.skip_node_minifier:
        overrides["force_in_process"] = True
    if args.minifier:
        overrides["minifier_path"] = args.minifier
    if args.fallback_path:
        overrides["fallback_path"] = args.fallback_path
    config = dataclasses.replace(config, **overrides)

    geo = None if args.no_geo else geo_refresh_for(config)
    try:
        Pipeline(config, geo_refresh=geo).run()
    except SubprocessFailed as e:
        if e.output:
            print(e.output, file=sys.stderr)
        logger.error("%s: %s", e, " ".join(e.argv))
        return e.returncode if e.returncode > 0 else 1
    except PipelineError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
