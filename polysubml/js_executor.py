"""Run compiled JavaScript under Node.js, optionally caching the output."""

from __future__ import annotations

import hashlib
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Optional, Union

TIMEOUT_SECONDS = 10


class JsExecutionError(Exception):
    """Raised when compiled code cannot be run or fails while running."""


class JsExecutor:
    """Executes compiled code by prepending a runtime and running it with node.

    ``runtime`` is the JavaScript source that defines the ``execute`` entry point.
    Results are cached per compiled-code hash when ``cache_dir`` is given.
    """

    def __init__(self, runtime: str, cache_dir: Optional[Union[str, os.PathLike]] = None) -> None:
        self.runtime = runtime
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None

    def _cache_file(self, js_code: str) -> Optional[Path]:
        if self.cache_dir is None:
            return None
        digest = hashlib.sha256(js_code.encode("utf-8")).hexdigest()
        return self.cache_dir / f"{digest}.output"

    def _cached_result(self, js_code: str) -> Optional[str]:
        path = self._cache_file(js_code)
        if path is None:
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

    def _cache_result(self, js_code: str, result: str) -> None:
        path = self._cache_file(js_code)
        if path is None:
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            path.write_text(result, encoding="utf-8")
        except OSError as e:
            raise JsExecutionError(f"Failed to write cache file {path}: {e}") from e

    @staticmethod
    def _node_available() -> bool:
        try:
            status = subprocess.run(
                ["node", "--version"], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
            )
        except OSError:
            return False
        return status.returncode == 0

    def execute_js(self, compiled_code: str) -> str:
        """Run the compiled code and return what it printed."""
        cached = self._cached_result(compiled_code)
        if cached is not None:
            return cached

        if not self._node_available():
            raise JsExecutionError("Node.js is required but not available")

        escaped = compiled_code.replace("`", "\\`")
        script = f"{self.runtime}\nexecute(String.raw`{escaped}`);"

        with tempfile.NamedTemporaryFile("w", suffix=".js", delete=False, encoding="utf-8") as f:
            f.write(script)
            script_path = f.name
        try:
            try:
                output = subprocess.run(
                    ["node", script_path], capture_output=True, timeout=TIMEOUT_SECONDS
                )
            except subprocess.TimeoutExpired as e:
                raise JsExecutionError(f"Execution timeout exceeded ({TIMEOUT_SECONDS} seconds)") from e
            except OSError as e:
                raise JsExecutionError(f"Failed to start node: {e}") from e
        finally:
            os.unlink(script_path)

        if output.returncode != 0:
            stderr = output.stderr.decode("utf-8", errors="replace")
            raise JsExecutionError(f"Node.js execution failed: {stderr}")

        result = output.stdout.decode("utf-8", errors="replace")
        self._cache_result(compiled_code, result)
        return result