# assetfinish/utils/errors.py
"""
Error taxonomy for the finishing pipeline.

Only PipelineError subclasses are allowed to end a run with a non-zero
exit status. Best-effort steps (mirroring, geo refresh) log and carry on.
"""
from typing import Sequence


class PipelineError(Exception):
    """Fatal: aborts the whole run."""


class ConfigurationError(PipelineError):
    pass


class ManifestError(PipelineError):
    pass


class SubprocessFailed(PipelineError):
    def __init__(self, argv: Sequence[str], returncode: int, output: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.output = output or ""
        super().__init__(f"{self.argv[0]} exited with status {returncode}")


class MinifierFailed(SubprocessFailed):
    pass


class CompressorFailed(SubprocessFailed):
    pass
