# assetfinish/media/jobs.py
"""
Schedule and run per-file finishing jobs.

Each script in the manifest goes through:
  policy -> (move to shadow + minify)? -> size/mtime -> gzip -> brotli -> manifest

A shadow file next to the output marks a file as already finished and
skips it. Any subprocess failure is fatal for the whole run.
"""
import logging
import os
import shutil
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import AbstractSet, Callable, List, Optional

from assetfinish.media import post_compress
from assetfinish.media.manifest import ManifestStore
from assetfinish.media.minify import Minifier
from assetfinish.media.policy import max_compress

logger = logging.getLogger(__name__)


def shadow_path(output_file: str) -> str:
    p = PurePosixPath(output_file)
    if p.parent.as_posix() == ".":
        return f"_{p.name}"
    return (p.parent / f"_{p.name}").as_posix()


def iso_mtime(path: Path) -> str:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).isoformat()


@dataclass(frozen=True)
class Job:
    logical_path: str
    input_file: str
    shadow_file: str


@dataclass(frozen=True)
class JobResult:
    logical_path: str
    max_compress: bool
    size: int
    mtime: str


@dataclass
class RunStats:
    processed: int = 0
    skipped: int = 0
    max_compressed: int = 0


class WorkerPool:
    """
    Fixed-size thread pool with a join-all barrier.

    submit() never blocks. join() waits for every job; on the first
    failure it cancels jobs that have not started and re-raises.
    Jobs already running are left to finish.
    """

    def __init__(self, size: int):
        self.size = max(1, size)
        self._executor = ThreadPoolExecutor(max_workers=self.size, thread_name_prefix="assetfinish")
        self._futures: List[Future] = []

    def submit(self, fn: Callable, *args) -> Future:
        fut = self._executor.submit(fn, *args)
        self._futures.append(fut)
        return fut

    def join(self) -> None:
        try:
            done, _ = wait(self._futures, return_when=FIRST_EXCEPTION)
            for fut in done:
                if not fut.cancelled() and fut.exception() is not None:
                    self._executor.shutdown(wait=True, cancel_futures=True)
                    raise fut.exception()
        finally:
            self._executor.shutdown(wait=True)


class JobScheduler:
    def __init__(
        self,
        root: Path,
        manifest: ManifestStore,
        minifier: Minifier,
        skip_list: AbstractSet[str] = frozenset(),
        locales: AbstractSet[str] = frozenset(),
        concurrent: bool = False,
        workers: Optional[int] = None,
        gzip_bin: str = "gzip",
        brotli_bin: str = "brotli",
    ):
        self.root = Path(root)
        self.manifest = manifest
        self.minifier = minifier
        self.skip_list = frozenset(skip_list)
        self.locales = frozenset(locales)
        self.concurrent = concurrent
        self.workers = workers or os.cpu_count() or 1
        self.gzip_bin = gzip_bin
        self.brotli_bin = brotli_bin
        self._stats_lock = threading.Lock()

    def plan(self, stats: RunStats) -> List[Job]:
        jobs = []
        for key, entry in self.manifest.entries():
            if not entry.is_script:
                continue
            shadow = shadow_path(entry.output_file)
            if (self.root / shadow).exists():
                logger.info("Skipping: %s already compressed", entry.output_file)
                # Resync in case an earlier run finished this file but never saved.
                output = self.root / entry.output_file
                self.manifest.mutate(key, output.stat().st_size, iso_mtime(output))
                stats.skipped += 1
                continue
            jobs.append(Job(logical_path=key, input_file=entry.output_file, shadow_file=shadow))
        return jobs

    def run(self) -> RunStats:
        stats = RunStats()
        jobs = self.plan(stats)

        if not self.concurrent:
            for job in jobs:
                self._record(stats, self.run_job(job))
            return stats

        pool = WorkerPool(self.workers)
        logger.info("Compressing %d file(s) on %d worker(s)", len(jobs), pool.size)
        for job in jobs:
            pool.submit(lambda j: self._record(stats, self.run_job(j)), job)
        pool.join()
        return stats

    def run_job(self, job: Job) -> JobResult:
        start = time.monotonic()
        output = self.root / job.input_file
        aggressive = max_compress(job.logical_path, self.skip_list, self.locales)

        shadow = self.root / job.shadow_file
        if aggressive:
            logger.info("Compressing: %s", job.input_file)
            shutil.move(str(output), str(shadow))

        try:
            if aggressive:
                self.minifier.compile(job.shadow_file, job.input_file)

            size = output.stat().st_size
            mtime = iso_mtime(output)

            post_compress.gzip(output, binary=self.gzip_bin)
            post_compress.brotli(output, aggressive, binary=self.brotli_bin)
        except BaseException:
            # A shadow file marks the entry finished; restore the original.
            if aggressive and shadow.exists():
                os.replace(shadow, output)
            raise

        self.manifest.mutate(job.logical_path, size, mtime)
        logger.info("Done compressing %s : %.2f secs", job.input_file, time.monotonic() - start)
        return JobResult(job.logical_path, aggressive, size, mtime)

    def _record(self, stats: RunStats, result: JobResult) -> None:
        with self._stats_lock:
            stats.processed += 1
            if result.max_compress:
                stats.max_compressed += 1
