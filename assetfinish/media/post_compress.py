# assetfinish/media/post_compress.py
import os
import stat
import subprocess
from pathlib import Path

from assetfinish.utils.errors import CompressorFailed

READABLE = stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH

# Shell convention for "command not found".
NOT_FOUND = 127


def brotli_quality(max_compress: bool) -> int:
    return 11 if max_compress else 6


def gzip(path: Path, binary: str = "gzip") -> Path:
    """Write <path>.gz at maximum ratio."""
    target = Path(f"{path}.gz")
    argv = [binary, "-f", "-c", "-9", str(path)]
    try:
        with target.open("wb") as f:
            proc = subprocess.run(argv, stdout=f, stderr=subprocess.PIPE)
    except OSError as e:
        target.unlink(missing_ok=True)
        raise CompressorFailed(argv, NOT_FOUND, str(e)) from e
    if proc.returncode != 0:
        raise CompressorFailed(argv, proc.returncode, proc.stderr.decode("utf-8", "replace"))
    return target


def brotli(path: Path, max_compress: bool, binary: str = "brotli") -> Path:
    """Write <path>.br and leave it world-readable."""
    target = Path(f"{path}.br")
    argv = [binary, "-f", f"--quality={brotli_quality(max_compress)}", str(path), f"--output={target}"]
    try:
        proc = subprocess.run(argv, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
    except OSError as e:
        raise CompressorFailed(argv, NOT_FOUND, str(e)) from e
    if proc.returncode != 0:
        raise CompressorFailed(argv, proc.returncode, proc.stdout)
    try:
        os.chmod(target, os.stat(target).st_mode | READABLE)
    except OSError as e:
        raise CompressorFailed(["chmod", "a+r", str(target)], 1, str(e)) from e
    return target
