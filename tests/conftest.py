import json
import os
from pathlib import Path

import pytest

from assetfinish.utils.env import FinishConfig

FAKE_GZIP = """#!/bin/sh
for a; do f="$a"; done
echo "$@" >> "$(dirname "$0")/gzip.log"
cat "$f"
"""

FAKE_BROTLI = """#!/bin/sh
src=""; out=""
for a; do
  case "$a" in
    --output=*) out="${a#--output=}" ;;
    -*) ;;
    *) src="$a" ;;
  esac
done
echo "$@" >> "$(dirname "$0")/brotli.log"
cp "$src" "$out"
chmod 600 "$out"
"""

# Mimics `uglifyjs <in> -m -c -o <out> --source-map ...`
FAKE_UGLIFY = """#!/bin/sh
echo "$@" >> "$(dirname "$0")/uglifyjs.log"
src="$1"; out="$5"
tr -d ' \\n' < "$src" > "$out"
echo "//# sourceMappingURL=/assets/x.map" >> "$out"
echo '{"version":3}' > "$out.map"
"""

FAILING = """#!/bin/sh
echo "boom: $@" >&2
exit 3
"""


def write_exe(path: Path, body: str) -> str:
    path.write_text(body)
    os.chmod(path, 0o755)
    return str(path)


@pytest.fixture
def bin_dir(tmp_path):
    d = tmp_path / "bin"
    d.mkdir()
    write_exe(d / "gzip", FAKE_GZIP)
    write_exe(d / "brotli", FAKE_BROTLI)
    write_exe(d / "uglifyjs", FAKE_UGLIFY)
    write_exe(d / "fail", FAILING)
    return d


@pytest.fixture
def tool_log(bin_dir):
    def read(name):
        log = bin_dir / f"{name}.log"
        return log.read_text().splitlines() if log.exists() else []
    return read


SOURCES = {
    "app.js": ("app-abc123.js", "// app\nfunction hello ( name ) {\n  return 'hi ' + name ;\n}\n"),
    "locales/en.js": ("locales/en-def456.js", "/* en */\nvar I18n = { greeting : 'hello' } ;\n"),
    "locales/fr.js": ("locales/fr-789abc.js", "/* fr */\nvar I18n = { greeting : 'bonjour' } ;\n"),
    "app.css": ("app-ffee00.css", "body { color : red ; }\n"),
}


@pytest.fixture
def asset_root(tmp_path):
    root = tmp_path / "public" / "assets"
    manifest = {}
    for logical, (output, body) in SOURCES.items():
        p = root / output
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(body)
        manifest[logical] = {
            "logical_path": logical,
            "output_file": output,
            "size": len(body),
            "mtime": "2020-01-01T00:00:00+00:00",
            "digest": output.rsplit("-", 1)[1].split(".")[0],
        }
    (root / "manifest.json").write_text(json.dumps(manifest, indent=2))
    return root


@pytest.fixture
def config(asset_root, bin_dir):
    return FinishConfig(
        root=asset_root,
        run_mode="production",
        force_in_process=True,
        workers=2,
        gzip_bin=str(bin_dir / "gzip"),
        brotli_bin=str(bin_dir / "brotli"),
    )
