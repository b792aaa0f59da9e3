from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess
import tempfile
from collections.abc import Sequence

from plugbuild.engines.base import EngineResult
from plugbuild.errors import TransformError
from plugbuild.transform.options import TransformOptions

logger = logging.getLogger(__name__)


class NodeEngine:
    """Drive the ``swc`` and ``esbuild`` command line tools over stdin/stdout."""

    name = "node"

    def __init__(
        self,
        *,
        swc_bin: str = "swc",
        esbuild_bin: str = "esbuild",
        timeout: float | None = None,
    ) -> None:
        self.swc_command = shlex.split(swc_bin)
        self.esbuild_command = shlex.split(esbuild_bin)
        self.timeout = timeout
        if not self.swc_command or not self.esbuild_command:
            raise ValueError("engine commands must not be empty")

    def transform(self, code: str, options: TransformOptions) -> EngineResult:
        config = json.dumps(options.to_swc_config(), indent=2, sort_keys=True)
        fd, config_path = tempfile.mkstemp(prefix="plugbuild-", suffix=".swcrc")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(config)
            args = [
                *self.swc_command,
                "--config-file",
                config_path,
                "--filename",
                options.filename,
            ]
            return self._run(args, code, module=options.filename)
        finally:
            os.unlink(config_path)

    def minify(self, code: str) -> EngineResult:
        args = [*self.esbuild_command, "--minify", "--loader=js", "--log-level=warning"]
        return self._run(args, code, module=None)

    def _run(self, args: Sequence[str], code: str, *, module: str | None) -> EngineResult:
        logger.debug("engine run args=%s module=%s", " ".join(args), module)
        try:
            completed = subprocess.run(
                list(args),
                input=code,
                capture_output=True,
                text=True,
                encoding="utf-8",
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise TransformError(f"engine tool not found: {args[0]}", module=module) from exc
        except subprocess.TimeoutExpired as exc:
            raise TransformError(f"engine tool timed out: {args[0]}", module=module) from exc
        stderr = completed.stderr.strip()
        if completed.returncode != 0:
            detail = stderr or f"exit status {completed.returncode}"
            raise TransformError(f"{args[0]} failed: {detail}", module=module)
        warnings = [line for line in stderr.splitlines() if line.strip()]
        return EngineResult(code=completed.stdout, warnings=warnings)
