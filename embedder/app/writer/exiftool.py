"""
External tag primitive.

Physical tag reads and writes are delegated to ExifTool. This module owns
no knowledge of image formats; it only drives the tool.

TagSession is the capability the writer depends on:

    write(path, tags, flags) -> None
    read(path) -> flat tag map
    version() -> str

ExifToolSession implements it with one long-lived
``exiftool -stay_open True -@ -`` process. The session is an explicit,
caller-owned resource:

- commands on one session are serialized by a lock
- a process that has exited is restarted on next use
- health_check() and reinitialize() are explicit operations
- a command exceeding the configured timeout kills the process and
  raises ExifToolTimeoutError

Callers MUST NOT write the same file path through two different sessions
concurrently.
"""

from __future__ import annotations

import json
import logging
import os
import selectors
import subprocess
import tempfile
import threading
import time
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from embedder.app.config import EmbedderConfig
from embedder.app.mapping.tag_map import (
    VENDOR_NAMESPACE_URI,
    VENDOR_PREFIX,
    TagValue,
    vendor_tag_names,
)

logger = logging.getLogger(__name__)

OVERWRITE_ORIGINAL = "-overwrite_original"

_TYPED_VENDOR_TAGS = {
    "SafetyValidated": "boolean",
    "VisionConfidenceScore": "integer",
    "FileSizeOriginal": "integer",
}

_CHARSET_ARGS = ("-charset", "iptc=UTF8", "-IPTC:CodedCharacterSet=UTF8")


class ExifToolError(RuntimeError):
    """The tag tool failed or reported an error."""


class ExifToolTimeoutError(ExifToolError):
    """The tag tool did not answer within the configured timeout."""


class TagSession(Protocol):
    def write(
        self,
        path: str,
        tags: Mapping[str, TagValue],
        flags: Sequence[str] = (),
    ) -> None:
        ...

    def read(self, path: str) -> Dict[str, Any]:
        ...

    def version(self) -> str:
        ...


# ---------------------------------------------------------------------------
# Vendor namespace configuration
# ---------------------------------------------------------------------------


def build_exiftool_config() -> str:
    """ExifTool user-defined config registering the vendor XMP namespace."""
    lines = [
        "%Image::ExifTool::UserDefined = (",
        "    'Image::ExifTool::XMP::Main' => {",
        f"        {VENDOR_PREFIX} => {{",
        "            SubDirectory => {",
        f"                TagTable => 'Image::ExifTool::UserDefined::{VENDOR_PREFIX}',",
        "            },",
        "        },",
        "    },",
        ");",
        "",
        f"%Image::ExifTool::UserDefined::{VENDOR_PREFIX} = (",
        f"    GROUPS => {{ 0 => 'XMP', 1 => 'XMP-{VENDOR_PREFIX}', 2 => 'Image' }},",
        f"    NAMESPACE => {{ '{VENDOR_PREFIX}' => '{VENDOR_NAMESPACE_URI}' }},",
        "    WRITABLE => 'string',",
    ]
    for name in dict.fromkeys(vendor_tag_names()):
        writable = _TYPED_VENDOR_TAGS.get(name)
        if writable:
            lines.append(f"    {name} => {{ Writable => '{writable}' }},")
        else:
            lines.append(f"    {name} => {{ }},")
    lines.extend([");", "", "1;", ""])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Argument and output helpers
# ---------------------------------------------------------------------------


def _clean(value: str) -> str:
    return " ".join(str(value).splitlines())


def tag_arguments(tags: Mapping[str, TagValue]) -> List[str]:
    """One ``-TAG=value`` argument per value; list values repeat the tag."""
    args: List[str] = []
    for tag, value in tags.items():
        if isinstance(value, (list, tuple)):
            args.extend(f"-{tag}={_clean(item)}" for item in value)
        else:
            args.append(f"-{tag}={_clean(value)}")
    return args


def flatten_read_result(record: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Expose both ``Group:Tag`` and bare ``Tag`` keys.

    For bare names the first group in output order wins.
    """
    flat: Dict[str, Any] = {}
    for key, value in record.items():
        flat[key] = value
    for key, value in record.items():
        if ":" in key:
            flat.setdefault(key.split(":", 1)[1], value)
    return flat


def parse_json_output(output: str) -> List[Dict[str, Any]]:
    start = output.find("[")
    end = output.rfind("]")
    if start == -1 or end < start:
        raise ExifToolError(f"No JSON in exiftool output: {output.strip()[:200]}")
    try:
        parsed = json.loads(output[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ExifToolError(f"Malformed exiftool JSON output: {exc}") from exc
    if not isinstance(parsed, list):
        raise ExifToolError("Unexpected exiftool JSON output shape")
    return parsed


def error_lines(output: str) -> List[str]:
    return [
        line.strip()
        for line in output.splitlines()
        if line.strip().startswith("Error")
    ]


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class ExifToolSession:
    """Long-lived ExifTool process behind the TagSession interface."""

    def __init__(
        self,
        executable: str = "exiftool",
        *,
        timeout: float = 60.0,
        config_path: Optional[str] = None,
    ):
        self.executable = executable
        self.timeout = timeout
        self._config_path = config_path
        self._generated_config: Optional[str] = None
        self._process: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()
        self._sequence = 0

    @classmethod
    def from_config(cls, config: EmbedderConfig) -> "ExifToolSession":
        return cls(
            config.EXIFTOOL_PATH,
            timeout=config.EXIFTOOL_TIMEOUT_SECONDS,
            config_path=config.EXIFTOOL_CONFIG_PATH,
        )

    # ------------------------------------------------------------------
    # Process lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def _resolve_config(self) -> str:
        if self._config_path:
            return self._config_path
        if self._generated_config is None:
            fd, path = tempfile.mkstemp(prefix="proofembed-", suffix=".config")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(build_exiftool_config())
            self._generated_config = path
        return self._generated_config

    def _start(self) -> None:
        command = [
            self.executable,
            "-config",
            self._resolve_config(),
            "-stay_open",
            "True",
            "-@",
            "-",
        ]
        try:
            self._process = subprocess.Popen(
                command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as exc:
            raise ExifToolError(f"Failed to start exiftool: {exc}") from exc
        logger.info("Started exiftool session (pid=%s)", self._process.pid)

    def _stop(self) -> None:
        process = self._process
        self._process = None
        if process is None:
            return

        if process.poll() is None:
            try:
                process.stdin.write(b"-stay_open\nFalse\n")
                process.stdin.flush()
                process.wait(timeout=5)
            except (OSError, subprocess.TimeoutExpired):
                process.kill()
                process.wait()

        for stream in (process.stdin, process.stdout):
            if stream is not None:
                stream.close()

    def _ensure_started(self) -> subprocess.Popen:
        if not self.is_running:
            if self._process is not None:
                logger.warning("exiftool process exited; restarting")
                self._stop()
            self._start()
        return self._process

    def reinitialize(self) -> None:
        with self._lock:
            self._stop()
            self._start()

    def close(self) -> None:
        with self._lock:
            self._stop()
            if self._generated_config is not None:
                try:
                    os.unlink(self._generated_config)
                except FileNotFoundError:
                    pass
                self._generated_config = None

    def __enter__(self) -> "ExifToolSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------

    def _read_until(self, process: subprocess.Popen, marker: bytes) -> bytes:
        deadline = time.monotonic() + self.timeout
        buffer = bytearray()
        fd = process.stdout.fileno()

        with selectors.DefaultSelector() as selector:
            selector.register(fd, selectors.EVENT_READ)
            while marker not in buffer:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    process.kill()
                    raise ExifToolTimeoutError(
                        f"exiftool did not respond within {self.timeout:.1f}s"
                    )
                if not selector.select(remaining):
                    continue
                chunk = os.read(fd, 65536)
                if not chunk:
                    raise ExifToolError("exiftool process ended unexpectedly")
                buffer.extend(chunk)

        return bytes(buffer[: buffer.index(marker)])

    def execute(self, args: Sequence[str]) -> str:
        """Run one command in the session and return its output."""
        with self._lock:
            process = self._ensure_started()
            self._sequence += 1
            sequence = self._sequence

            payload = "\n".join(list(args) + [f"-execute{sequence}", ""])
            try:
                process.stdin.write(payload.encode("utf-8"))
                process.stdin.flush()
            except OSError as exc:
                self._stop()
                raise ExifToolError(f"Failed to send command to exiftool: {exc}") from exc

            try:
                raw = self._read_until(process, f"{{ready{sequence}}}".encode("ascii"))
            except ExifToolError:
                self._stop()
                raise

        return raw.decode("utf-8", errors="replace")

    # ------------------------------------------------------------------
    # TagSession
    # ------------------------------------------------------------------

    def write(
        self,
        path: str,
        tags: Mapping[str, TagValue],
        flags: Sequence[str] = (),
    ) -> None:
        args = list(flags) + list(_CHARSET_ARGS) + tag_arguments(tags) + [str(path)]
        output = self.execute(args)

        errors = error_lines(output)
        if errors:
            raise ExifToolError("; ".join(errors))
        logger.debug("exiftool write %s: %s", path, output.strip())

    def read(self, path: str) -> Dict[str, Any]:
        output = self.execute(["-json", "-G1", "-charset", "iptc=UTF8", str(path)])
        records = parse_json_output(output)
        if not records:
            raise ExifToolError(f"exiftool returned no metadata for {path}")
        return flatten_read_result(records[0])

    def version(self) -> str:
        return self.execute(["-ver"]).strip()

    def health_check(self) -> str:
        """Return the tool version, restarting the process once on failure."""
        try:
            return self.version()
        except ExifToolError:
            logger.warning("exiftool health check failed; reinitializing")
            self.reinitialize()
            return self.version()
