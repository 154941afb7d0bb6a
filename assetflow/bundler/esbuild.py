"""Adapter around the esbuild executable."""

from __future__ import annotations

import json
import os
import re
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from ..errors import CompileError, SetupError

_ERROR_LOCATION = re.compile(r"^\s*(?P<path>[^\s:][^:\n]*):(?P<line>\d+):(?P<column>\d+):", re.MULTILINE)
_ERROR_MESSAGE = re.compile(r"\[ERROR\]\s*(?P<message>[^\n]+)")


@dataclass
class BundleRequest:
    """Inputs for one bundling run."""

    entry: Path
    outfile: Path
    bundle: bool = True
    format: str = "iife"
    minify: bool = False
    sourcemap: bool = False
    targets: Tuple[str, ...] = ()


@dataclass
class BundleOutput:
    """The single self-contained output unit and its optional source map."""

    code: bytes
    source_map: Optional[bytes] = None


class Bundler(Protocol):
    def bundle(self, request: BundleRequest) -> BundleOutput:
        """Bundle the module graph reachable from the request entry."""


CommandRunner = Callable[[Sequence[str], Path], "subprocess.CompletedProcess[str]"]


def _subprocess_runner(args: Sequence[str], cwd: Path) -> "subprocess.CompletedProcess[str]":
    return subprocess.run(list(args), cwd=cwd, capture_output=True, text=True, check=False)


class EsbuildBundler:
    """Runs esbuild into a scratch directory and reads the outputs back."""

    def __init__(
        self,
        executable: str | None = None,
        *,
        cwd: Path | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        self.cwd = cwd or Path.cwd()
        self.executable = executable or self._locate(self.cwd)
        self._runner = runner or _subprocess_runner

    @staticmethod
    def _locate(root: Path) -> str:
        local = root / "node_modules" / ".bin" / ("esbuild.cmd" if os.name == "nt" else "esbuild")
        if local.exists():
            return str(local)
        return shutil.which("esbuild") or "esbuild"

    def build_args(self, request: BundleRequest, outfile: Path) -> List[str]:
        args = [self.executable, str(request.entry)]
        if request.bundle:
            args.append("--bundle")
        args.append(f"--format={request.format}")
        args.append(f"--outfile={outfile}")
        if request.minify:
            args.append("--minify")
        if request.sourcemap:
            args.append("--sourcemap")
        if request.targets:
            args.append(f"--target={','.join(request.targets)}")
        args.append("--log-level=error")
        return args

    def bundle(self, request: BundleRequest) -> BundleOutput:
        with tempfile.TemporaryDirectory(prefix="assetflow-esbuild-") as scratch:
            scratch_dir = Path(scratch)
            outfile = scratch_dir / request.outfile.name
            args = self.build_args(request, outfile)
            try:
                completed = self._runner(args, self.cwd)
            except FileNotFoundError as exc:
                raise SetupError(
                    f"Unable to locate '{self.executable}'. Install esbuild (npm i -D esbuild) "
                    "or set tools.esbuild in assetflow.yml."
                ) from exc
            if completed.returncode != 0:
                raise _compile_error(completed.stderr or completed.stdout or "", request.entry)
            try:
                code = outfile.read_bytes()
            except FileNotFoundError as exc:
                raise CompileError("esbuild reported success but wrote no bundle", path=request.entry) from exc
            source_map = None
            map_path = outfile.with_name(outfile.name + ".map")
            if request.sourcemap and map_path.exists():
                source_map = _relocate_source_map(
                    map_path.read_bytes(), scratch_dir, request.outfile.parent
                )
        return BundleOutput(code=code, source_map=source_map)


def _relocate_source_map(payload: bytes, built_in: Path, final_dir: Path) -> bytes:
    """Rewrite `sources` so they are relative to where the bundle finally lands."""
    data = json.loads(payload.decode("utf-8"))
    sources = data.get("sources")
    if isinstance(sources, list):
        relocated = []
        for source in sources:
            if not isinstance(source, str) or ":" in source.split("/", 1)[0]:
                relocated.append(source)
                continue
            absolute = os.path.normpath(os.path.join(built_in, source))
            relocated.append(Path(os.path.relpath(absolute, final_dir)).as_posix())
        data["sources"] = relocated
    return json.dumps(data, separators=(",", ":")).encode("utf-8")


def _compile_error(output: str, entry: Path) -> CompileError:
    text = output.strip()
    message_match = _ERROR_MESSAGE.search(text)
    if message_match is not None:
        message = message_match.group("message").strip()
    else:
        message = text.splitlines()[0] if text else "esbuild failed"
    location = _ERROR_LOCATION.search(text)
    if location is None:
        return CompileError(message, path=entry)
    return CompileError(
        message,
        path=Path(location.group("path").strip()),
        line=int(location.group("line")),
        column=int(location.group("column")),
    )


__all__ = ["BundleOutput", "BundleRequest", "Bundler", "EsbuildBundler"]
