# assetfinish/media/minify.py
"""
Minify a script and emit its source map.

Two backends share the same compile(source, output) contract. Paths are
relative to the asset root; both write `output` and `output.map`, and the
minified file points at the map through a CDN-relative URL.
"""
import gc
import json
import logging
import os
import shutil
import subprocess
from pathlib import Path, PurePosixPath
from typing import Optional, Tuple

import rjsmin

from assetfinish.media import sourcemap
from assetfinish.utils.env import FinishConfig
from assetfinish.utils.errors import MinifierFailed

logger = logging.getLogger(__name__)

NODE_MINIFIERS = ("uglifyjs", "terser")


def cdn_path(cdn_url: str, path: str) -> str:
    return f"{cdn_url.rstrip('/')}{path}" if cdn_url else path


def source_map_root(cdn_url: str, source: str) -> str:
    d = PurePosixPath(source).parent.as_posix()
    return cdn_path(cdn_url, "/assets" if d == "." else f"/assets/{d}")


def source_map_url(cdn_url: str, output: str) -> str:
    return cdn_path(cdn_url, f"/assets/{output}.map")


class Minifier:
    name = "minifier"

    def __init__(self, root: Path, cdn_url: str = ""):
        self.root = Path(root)
        self.cdn_url = cdn_url

    def compile(self, source: str, output: str) -> Tuple[Path, Path]:
        raise NotImplementedError


class ExternalMinifier(Minifier):
    name = "external"

    def __init__(self, binary: str, root: Path, cdn_url: str = ""):
        super().__init__(root, cdn_url)
        self.binary = binary

    def argv(self, source: str, output: str):
        root = str(self.root)
        options = "base='{}',root='{}',url='{}'".format(
            root,
            source_map_root(self.cdn_url, source),
            source_map_url(self.cdn_url, output),
        )
        return [
            self.binary,
            str(self.root / source),
            "-m",
            "-c",
            "-o",
            str(self.root / output),
            "--source-map",
            options,
        ]

    def compile(self, source: str, output: str) -> Tuple[Path, Path]:
        argv = self.argv(source, output)
        try:
            proc = subprocess.run(argv, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
        except OSError as e:
            raise MinifierFailed(argv, 127, str(e)) from e
        if proc.returncode != 0:
            raise MinifierFailed(argv, proc.returncode, proc.stdout)
        out = self.root / output
        return out, out.with_name(out.name + ".map")


class InProcessMinifier(Minifier):
    name = "in-process"

    def compile(self, source: str, output: str) -> Tuple[Path, Path]:
        src = self.root / source
        out = self.root / output
        map_path = out.with_name(out.name + ".map")

        code = src.read_text(encoding="utf-8")
        minified = rjsmin.jsmin(code, keep_bang_comments=False)
        url = source_map_url(self.cdn_url, output)
        out.write_text(f"{minified}\n//# sourceMappingURL={url}\n", encoding="utf-8")

        source_map = sourcemap.build(
            code, minified, out.name, src.name, source_map_root(self.cdn_url, source)
        )
        map_path.write_text(json.dumps(source_map), encoding="utf-8")

        del code, minified, source_map
        gc.collect()
        return out, map_path


def find_node_minifier(override: Optional[str] = None) -> Optional[str]:
    if override:
        if os.path.isfile(override) and os.access(override, os.X_OK):
            return override
        found = shutil.which(override)
        if found:
            return found
        logger.warning("minifier override %s is not executable; falling back", override)
    for name in NODE_MINIFIERS:
        found = shutil.which(name)
        if found:
            return found
    return None


def select_minifier(config: FinishConfig) -> Minifier:
    if not config.force_in_process:
        binary = find_node_minifier(config.minifier_path)
        if binary:
            logger.info("Compressing Javascript and Generating Source Maps with %s", binary)
            return ExternalMinifier(binary, config.root, config.cdn_url)
    logger.info("Compressing Javascript and Generating Source Maps in-process (rjsmin)")
    return InProcessMinifier(config.root, config.cdn_url)


__all__ = [
    "ExternalMinifier",
    "InProcessMinifier",
    "Minifier",
    "select_minifier",
    "source_map_root",
    "source_map_url",
]
