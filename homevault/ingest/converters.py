from __future__ import annotations

import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from homevault.core.logging import get_logger

from .errors import ConversionError

__all__ = [
    "ExternalConverter",
    "SubprocessConverter",
    "HeifConvertConverter",
    "FfmpegFrameExtractor",
    "probe_binary",
]


class ExternalConverter(ABC):
    """Turns one file into another, typically by shelling out to a codec."""

    @abstractmethod
    def convert(self, source: Path, target: Path) -> Path:
        """Produce ``target`` from ``source`` and return it, or raise :class:`ConversionError`."""


class SubprocessConverter(ExternalConverter):
    def __init__(self, binary: str, *, timeout_s: float | None = 60.0):
        self.binary = binary
        self.timeout_s = timeout_s
        self.logger = get_logger(component=type(self).__name__, binary=binary)

    def _run(self, command: Sequence[str]) -> None:
        self.logger.debug("converter_run", command=list(command))
        try:
            subprocess.run(
                list(command),
                check=True,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout_s,
            )
        except subprocess.CalledProcessError as exc:
            output = _decode(exc.output)
            raise ConversionError(f"{self.binary} exited with {exc.returncode}, output: {output}") from exc
        except subprocess.TimeoutExpired as exc:
            # subprocess.run has already killed and reaped the child here.
            raise ConversionError(f"{self.binary} timed out after {self.timeout_s}s") from exc
        except FileNotFoundError as exc:
            raise ConversionError(f"{self.binary} is not installed") from exc

    @staticmethod
    def _require_output(target: Path, binary: str) -> Path:
        if not target.is_file() or target.stat().st_size == 0:
            raise ConversionError(f"{binary} did not create output file")
        return target


class HeifConvertConverter(SubprocessConverter):
    """HEIC/HEIF to JPEG via libheif's ``heif-convert``."""

    def __init__(self, binary: str = "heif-convert", *, quality: int = 85, timeout_s: float | None = 60.0):
        super().__init__(binary, timeout_s=timeout_s)
        self.quality = quality

    def convert(self, source: Path, target: Path) -> Path:
        self._run([self.binary, "-q", str(self.quality), str(source), str(target)])
        return self._require_output(target, self.binary)


class FfmpegFrameExtractor(SubprocessConverter):
    """Grabs one still frame from a video.

    The frame at ``offset_s`` is preferred; clips shorter than that fall back
    to the very first frame.
    """

    def __init__(self, binary: str = "ffmpeg", *, offset_s: float = 1.0, timeout_s: float | None = 60.0):
        super().__init__(binary, timeout_s=timeout_s)
        self.offset_s = offset_s

    def convert(self, source: Path, target: Path) -> Path:
        try:
            self._extract(source, target, offset_s=self.offset_s)
            return self._require_output(target, self.binary)
        except ConversionError as exc:
            self.logger.info("frame_seek_failed", source=str(source), offset_s=self.offset_s, error=str(exc))
            target.unlink(missing_ok=True)

        self._extract(source, target, offset_s=None)
        return self._require_output(target, self.binary)

    def _extract(self, source: Path, target: Path, *, offset_s: float | None) -> None:
        command = [self.binary, "-nostdin", "-v", "error", "-y"]
        if offset_s is not None:
            command += ["-ss", f"{max(offset_s, 0.0):.3f}"]
        command += ["-i", str(source), "-frames:v", "1", "-q:v", "2", str(target)]
        self._run(command)


def _decode(output: bytes | str | None) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        output = output.decode("utf-8", errors="replace")
    return output.strip()


def probe_binary(command: Sequence[str], *, timeout_s: float = 10.0) -> bool:
    """True when the first element of ``command`` is installed and runs at all."""
    if shutil.which(command[0]) is None:
        return False
    try:
        subprocess.run(list(command), stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=False, timeout=timeout_s)
    except (OSError, subprocess.TimeoutExpired):
        return False
    return True
