#!/usr/bin/env python3
"""
Unmerged Branches Weight Analyzer (v1.0.0)

Estimates how much disk weight the unmerged history of every branch adds to a
git repository, so maintainers can decide which long-lived branches to prune.

Pipeline:
- Attribution: every non-merge commit that is reachable from a branch but not
  from the trunk is attributed to all branches reaching it. Tagged commits that
  no branch reaches land in the synthetic "$tags" bucket.
- Estimation: per commit, text changes are sized from numstat line counts and
  newly introduced binary blobs are sized exactly, then combined into a
  heuristic compressed size.
- Aggregation: commits are folded per branch and branches are ranked by
  estimated compressed size.

Attribution is overlapping, not exclusive: a commit reachable from several
branches is charged in full to each of them. Each branch figure answers
"what if I deleted just this branch", and the figures do not add up to the
repository size.

Version: 1.0.0
"""

import cProfile
import hashlib
import io
import json
import math
import os
import pstats
import subprocess
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import click
import psutil
import yaml
from colorama import Fore, Style, init as colorama_init
from tqdm import tqdm

# Version information
VERSION = "1.0.0"
SCHEMA_VERSION = "1.0.0"

TAGS_BUCKET = "$tags"
DEFAULT_REPORT_DIRNAME = "unmerged-branches-size-report"
TRUNK_CANDIDATES = ("master", "main")
CONFIG_FILE_NAMES = [
    ".branch-weight.yaml",
    ".branch-weight.yml",
    ".branch-weight.json",
]

COMMITS_REPORT = "commits_with_branches_and_sizes.json"
BRANCHES_REPORT = "sorted_branches_with_sizes.json"
BRANCHES_LIGHT_REPORT = "sorted_branches_with_sizes_light.json"
ERRORS_REPORT = "estimation_errors.txt"


# ============================================================================
# ERRORS
# ============================================================================


class BranchWeightError(Exception):
    """Base class for analyzer errors"""


class ConfigurationError(BranchWeightError):
    """
    A precondition of the run is not met: the repository, trunk branch, output
    directory or configuration file is unusable. Always fatal.
    """


# ============================================================================
# PROGRESS REPORTING
# ============================================================================


class ProgressReporter:
    """
    Console output for one run. Stage banners, messages, progress bars and the
    closing summary go to stdout and are silenced by `quiet`. Errors go to
    stderr unconditionally.
    """

    RULE_WIDTH = 70
    BAR_FORMAT = "{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}, {rate_fmt}]"

    def __init__(
        self, quiet: bool = False, verbose: bool = False, use_colors: bool = True
    ):
        self.quiet = quiet
        self.verbose = verbose
        self.use_colors = use_colors
        self.started_at = time.time()
        self.stage_started: Dict[str, float] = {}

    def _paint(self, text: str, *styles: str) -> str:
        if not self.use_colors:
            return text
        return "".join(styles) + text + Style.RESET_ALL

    def _out(self, *lines: str):
        if self.quiet:
            return
        for line in lines:
            print(line)

    def _rule(self) -> str:
        return self._paint("=" * self.RULE_WIDTH, Fore.CYAN)

    def stage_start(self, stage_name: str, message: str = ""):
        self.stage_started[stage_name] = time.time()
        lines = ["", self._rule(), self._paint(f"▶ {stage_name}", Fore.BLUE, Style.BRIGHT)]
        if message:
            lines.append(f"   {message}")
        lines.append(self._rule())
        self._out(*lines)

    def stage_complete(self, stage_name: str, stats: Optional[Dict] = None) -> float:
        """Print the stage duration (and stats when verbose); return the duration"""
        elapsed = time.time() - self.stage_started.pop(stage_name, time.time())
        self._out(self._paint(f"✔ {stage_name} done in {elapsed:.2f}s", Fore.GREEN, Style.BRIGHT))
        if stats and self.verbose:
            self._out(*(f"   {key}: {value}" for key, value in stats.items()))
        return elapsed

    def create_progress_bar(
        self, total: int, desc: str = "Processing", unit: str = " commits"
    ) -> Optional[tqdm]:
        if self.quiet:
            return None
        return tqdm(
            total=total,
            desc=self._paint(desc, Fore.CYAN),
            unit=unit,
            ncols=100,
            bar_format=self.BAR_FORMAT,
            leave=False,
        )

    def info(self, message: str):
        self._out(f"{self._paint('•', Fore.BLUE)} {message}")

    def detail(self, message: str):
        if self.verbose:
            self._out(f"   {message}")

    def warning(self, message: str):
        self._out(self._paint(f"! {message}", Fore.YELLOW, Style.BRIGHT))

    def error(self, message: str):
        print(self._paint(f"ERROR: {message}", Fore.RED, Style.BRIGHT), file=sys.stderr)

    def success(self, message: str):
        self._out(self._paint(message, Fore.GREEN, Style.BRIGHT))

    def summary(self, stats: Dict[str, Any]):
        elapsed = time.time() - self.started_at
        lines = [
            "",
            self._rule(),
            self._paint("BRANCH WEIGHT SUMMARY", Fore.MAGENTA, Style.BRIGHT),
            self._rule(),
        ]
        lines.extend(f"   {key}: {value}" for key, value in stats.items())
        lines.extend(["", self._paint(f"Total time: {elapsed:.2f}s", Fore.YELLOW), self._rule(), ""])
        self._out(*lines)


# ============================================================================
# PERFORMANCE MONITORING
# ============================================================================


class MemoryMonitor:
    """Monitor memory usage and enforce limits"""

    def __init__(self, limit_mb: Optional[float] = None):
        self.limit_mb = limit_mb
        self.peak_mb = 0.0

    def check_memory(self) -> float:
        """Get current memory usage in MB"""
        process = psutil.Process(os.getpid())
        memory_mb = process.memory_info().rss / 1024 / 1024
        self.peak_mb = max(self.peak_mb, memory_mb)

        if self.limit_mb and memory_mb > self.limit_mb:
            raise MemoryError(
                f"Memory limit exceeded: {memory_mb:.1f}MB > {self.limit_mb}MB"
            )

        return memory_mb

    def get_peak(self) -> float:
        return self.peak_mb


class ProfilingContext:
    """
    cProfile wrapper behind --profile. Raw stats are dumped to `output_path`
    when given, and the hottest functions by cumulative time are printed.
    """

    def __init__(
        self, enabled: bool = False, output_path: Optional[str] = None, top_n: int = 20
    ):
        self.enabled = enabled
        self.output_path = output_path
        self.top_n = top_n
        self.profiler = None

    def __enter__(self):
        if not self.enabled:
            return self
        self.profiler = cProfile.Profile()
        self.profiler.enable()
        return self

    def __exit__(self, *exc_info):
        if self.profiler is None:
            return False
        self.profiler.disable()
        if self.output_path:
            self.profiler.dump_stats(self.output_path)
        print(self.report())
        return False

    def report(self) -> str:
        buffer = io.StringIO()
        stats = pstats.Stats(self.profiler, stream=buffer)
        stats.strip_dirs().sort_stats(pstats.SortKey.CUMULATIVE).print_stats(self.top_n)
        rule = "=" * 70
        return (
            f"\n{rule}\nPROFILE: top {self.top_n} functions by cumulative time\n"
            f"{rule}\n{buffer.getvalue()}"
        )


@dataclass
class PerformanceMetrics:
    """Counters and timings for one analyzer run"""

    refs_scanned: int = 0
    commits_attributed: int = 0
    tag_only_commits: int = 0
    commits_estimated: int = 0
    estimation_errors: int = 0
    branches_ranked: int = 0
    stage_times: Dict[str, float] = field(default_factory=dict)
    memory_peak_mb: float = 0.0
    total_time: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "refs_scanned": self.refs_scanned,
            "commits_attributed": self.commits_attributed,
            "tag_only_commits": self.tag_only_commits,
            "commits_estimated": self.commits_estimated,
            "estimation_errors": self.estimation_errors,
            "branches_ranked": self.branches_ranked,
            "stage_times": {k: round(v, 3) for k, v in self.stage_times.items()},
            "memory_peak_mb": round(self.memory_peak_mb, 2),
            "total_time_seconds": round(self.total_time, 2),
        }


# ============================================================================
# CONFIGURATION FILE SUPPORT
# ============================================================================


def load_config_file(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from a YAML or JSON file.
    Supports .branch-weight.yaml, .branch-weight.yml and .branch-weight.json
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    file_ext = os.path.splitext(config_path)[1].lower()

    with open(config_path, "r", encoding="utf-8") as f:
        if file_ext in [".yaml", ".yml"]:
            data = yaml.safe_load(f)
        elif file_ext == ".json":
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {file_ext}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Configuration file must contain a mapping at the top level: {config_path}"
        )
    bad_keys = [k for k in data if not isinstance(k, str)]
    if bad_keys:
        raise ValueError(
            f"Configuration keys must be strings, got {bad_keys!r} in {config_path}"
        )
    return data


def find_config_file(repo_path: str) -> Optional[str]:
    """
    Auto-discover a configuration file in the repository, then in the
    current directory.
    """
    search_paths = [
        repo_path,
        os.getcwd(),
    ]

    for search_dir in search_paths:
        for config_name in CONFIG_FILE_NAMES:
            config_path = os.path.join(search_dir, config_name)
            if os.path.exists(config_path):
                return config_path

    return None


class ConfigResolver:
    """
    Resolve configuration with precedence: CLI > Config File > Preset > Defaults

    An explicitly passed config file must load; a failing auto-discovered one
    only produces a warning (see `warnings`).
    """

    PRESETS = {
        "extension": {"uniform_binary": False},
        "uniform": {"uniform_binary": True},
    }

    def __init__(
        self,
        cli_args: Dict[str, Any],
        config_path: Optional[str],
        preset_name: Optional[str],
        repo_path: str,
    ):
        self.cli = {k: v for k, v in cli_args.items() if v is not None}
        self.config = {}
        self.preset = {}
        self.config_path = None
        self.warnings: List[str] = []

        if config_path:
            try:
                self.config = load_config_file(config_path)
            except (OSError, ValueError, yaml.YAMLError) as e:
                raise ConfigurationError(
                    f"Cannot load configuration file {config_path}: {e}"
                ) from e
            self.config_path = config_path
        else:
            auto_path = find_config_file(repo_path)
            if auto_path:
                try:
                    self.config = load_config_file(auto_path)
                    self.config_path = auto_path
                except (OSError, ValueError, yaml.YAMLError) as e:
                    self.warnings.append(
                        f"Found config file {auto_path} but failed to load it: {e}"
                    )

        # kebab-case to snake_case
        self.config = {k.replace("-", "_"): v for k, v in self.config.items()}

        final_preset_name = preset_name or self.config.get("preset")
        if final_preset_name and final_preset_name not in self.PRESETS:
            raise ConfigurationError(
                f"Unknown preset {final_preset_name!r} "
                f"(expected one of: {', '.join(sorted(self.PRESETS))})"
            )
        self.preset_name = final_preset_name or "extension"
        self.preset = dict(self.PRESETS[self.preset_name])

    def get(self, key: str, default: Any = None) -> Any:
        """Resolve value based on precedence"""
        if key in self.cli:
            return self.cli[key]
        if key in self.config:
            return self.config[key]
        if key in self.preset:
            return self.preset[key]
        return default


# ============================================================================
# SIZE MODEL
# ============================================================================

AVERAGE_LINE_SIZE = 40
TEXT_COEFFICIENT = 0.2
DEFAULT_BINARY_COEFFICIENT = 0.8

_ARCHIVE_EXTENSIONS = (
    ".zip", ".gz", ".tgz", ".bz2", ".xz", ".txz", ".7z", ".rar", ".zst", ".lz4",
    ".jar", ".war", ".ear", ".whl", ".egg", ".apk", ".aab", ".ipa", ".nupkg",
    ".deb", ".rpm", ".dmg", ".cab",
)
_MEDIA_EXTENSIONS = (
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".avif", ".heic",
    ".mp4", ".m4v", ".mov", ".mkv", ".avi", ".webm", ".wmv", ".flv",
    ".mp3", ".m4a", ".aac", ".ogg", ".oga", ".opus", ".flac",
    ".woff", ".woff2", ".pdf", ".docx", ".xlsx", ".pptx", ".odt", ".ods",
)
_RAW_BINARY_EXTENSIONS = (
    ".bmp", ".tif", ".tiff", ".ico", ".psd", ".wav", ".aiff",
    ".exe", ".dll", ".so", ".dylib", ".o", ".a", ".lib", ".obj", ".class",
    ".pyc", ".bin", ".dat", ".db", ".sqlite", ".sqlite3", ".ttf", ".otf", ".iso",
)
_TEXT_LIKE_EXTENSIONS = (
    ".svg", ".json", ".xml", ".csv", ".tsv", ".txt", ".md", ".html", ".htm",
    ".css", ".js", ".map", ".ts", ".py", ".java", ".c", ".h", ".cpp", ".sql",
    ".yaml", ".yml", ".lock", ".log", ".ipynb", ".rtf", ".eps", ".ps",
)


def _coefficient_table() -> Dict[str, float]:
    table = {}
    for extensions, coefficient in (
        (_ARCHIVE_EXTENSIONS, 1.0),
        (_MEDIA_EXTENSIONS, 0.95),
        (_RAW_BINARY_EXTENSIONS, 0.5),
        (_TEXT_LIKE_EXTENSIONS, 0.25),
    ):
        for ext in extensions:
            table[ext] = coefficient
    return table


# Share of a binary blob's raw size expected to survive packfile compression,
# keyed by lower-cased extension. Unknown extensions fall back to
# DEFAULT_BINARY_COEFFICIENT.
BINARY_COMPRESSION_COEFFICIENTS: Mapping[str, float] = MappingProxyType(
    _coefficient_table()
)


def file_extension(path: str) -> str:
    """
    Lower-cased extension of the last path component ('' when none). A bare
    extension such as ".zip" is returned as is.
    """
    base = path.replace("\\", "/").rsplit("/", 1)[-1]
    ext = os.path.splitext(base)[1]
    if not ext and base.startswith("."):
        ext = base
    return ext.lower()


def normalize_extension(ext: str) -> str:
    ext = str(ext).strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


def binary_coefficient(
    path: str,
    coefficients: Mapping[str, float] = BINARY_COMPRESSION_COEFFICIENTS,
    default: float = DEFAULT_BINARY_COEFFICIENT,
) -> float:
    """Compression coefficient for a binary file, looked up by its extension"""
    return coefficients.get(file_extension(path), default)


@dataclass(frozen=True)
class SizeModel:
    """
    Heuristic parameters turning diff statistics into byte estimates.

    Text: every added or deleted line counts `average_line_size` bytes and
    compresses by `text_coefficient`. Binary: exact blob size, compressed by
    a per-extension coefficient, or by `default_binary_coefficient` for every
    file when `uniform` is set.
    """

    average_line_size: int = AVERAGE_LINE_SIZE
    text_coefficient: float = TEXT_COEFFICIENT
    default_binary_coefficient: float = DEFAULT_BINARY_COEFFICIENT
    binary_coefficients: Mapping[str, float] = field(
        default_factory=lambda: BINARY_COMPRESSION_COEFFICIENTS
    )
    uniform: bool = False

    def coefficient_for(self, path: str) -> float:
        if self.uniform:
            return self.default_binary_coefficient
        return binary_coefficient(
            path, self.binary_coefficients, self.default_binary_coefficient
        )

    def text_size(self, lines_added: int, lines_deleted: int) -> int:
        return (lines_added + lines_deleted) * self.average_line_size

    def estimate(self, text_size: int, binary_blobs: Iterable[Tuple[str, int]]) -> int:
        """
        Estimated compressed size of one commit.

        Args:
            text_size: heuristic text bytes of the commit
            binary_blobs: (path, size) of each binary blob the commit introduces
        """
        weighted = text_size * self.text_coefficient
        for path, size in binary_blobs:
            weighted += size * self.coefficient_for(path)
        return math.floor(weighted)

    @classmethod
    def from_resolver(cls, resolver: ConfigResolver) -> "SizeModel":
        """Build a size model from resolved configuration, validating values"""
        try:
            average_line_size = int(
                resolver.get("average_line_size", AVERAGE_LINE_SIZE)
            )
            text_coefficient = float(resolver.get("text_coefficient", TEXT_COEFFICIENT))
            default_coefficient = float(
                resolver.get("default_binary_coefficient", DEFAULT_BINARY_COEFFICIENT)
            )
            overrides = resolver.get("binary_coefficients") or {}
            if not isinstance(overrides, dict):
                raise ValueError("binary_coefficients must map extensions to numbers")
            coefficients = dict(BINARY_COMPRESSION_COEFFICIENTS)
            for ext, coefficient in overrides.items():
                coefficients[normalize_extension(ext)] = float(coefficient)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid size model configuration: {e}") from e

        if average_line_size <= 0:
            raise ConfigurationError("average_line_size must be a positive integer")
        for name, value in [
            ("text_coefficient", text_coefficient),
            ("default_binary_coefficient", default_coefficient),
            *coefficients.items(),
        ]:
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(
                    f"Compression coefficient for {name} must be within [0, 1], got {value}"
                )

        return cls(
            average_line_size=average_line_size,
            text_coefficient=text_coefficient,
            default_binary_coefficient=default_coefficient,
            binary_coefficients=MappingProxyType(coefficients),
            uniform=bool(resolver.get("uniform_binary", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        overrides = {
            ext: coefficient
            for ext, coefficient in sorted(self.binary_coefficients.items())
            if BINARY_COMPRESSION_COEFFICIENTS.get(ext) != coefficient
        }
        return {
            "average_line_size": self.average_line_size,
            "text_coefficient": self.text_coefficient,
            "default_binary_coefficient": self.default_binary_coefficient,
            "binary_coefficient_overrides": overrides,
            "uniform": self.uniform,
        }


def format_size_mb(size_bytes: float) -> str:
    """Human-readable MB string: one decimal from 0.1 MB, two from 0.01 MB, else '0 MB'"""
    size = size_bytes / (1024 * 1024)
    if size >= 0.1:
        return f"{size:.1f} MB"
    if size >= 0.01:
        return f"{size:.2f} MB"
    return "0 MB"


# ============================================================================
# DATA STRUCTURES & MODELS
# ============================================================================


@dataclass(frozen=True)
class Reference:
    """A local branch or remote-tracking branch"""

    name: str
    short_name: str

    @classmethod
    def from_refname(cls, refname: str) -> "Reference":
        short = refname
        for prefix in ("refs/heads/", "refs/remotes/"):
            if refname.startswith(prefix):
                short = refname[len(prefix):]
                break
        return cls(name=refname, short_name=short)


@dataclass(frozen=True)
class CommitRecord:
    """
    One unmerged commit. Created by attribution with zero sizes and replaced
    (never mutated) by estimation.
    """

    commit: str
    branches: Tuple[str, ...] = ()
    tag_only: bool = False
    text_size: int = 0
    binary_size: int = 0
    est_compressed_size: int = 0

    @property
    def raw_size(self) -> int:
        return self.text_size + self.binary_size

    def owners(self) -> Tuple[str, ...]:
        """Branch keys this commit is charged to"""
        if self.branches:
            return self.branches
        if self.tag_only:
            return (TAGS_BUCKET,)
        return ()

    def size_entry(self) -> Dict[str, Any]:
        return {
            "commit": self.commit,
            "text_size": self.text_size,
            "binary_size": self.binary_size,
            "est_compressed_size": self.est_compressed_size,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "commit": self.commit,
            "est_compressed_size": self.est_compressed_size,
            "est_compressed_size_mb": format_size_mb(self.est_compressed_size),
            "text_size": self.text_size,
            "binary_size": self.binary_size,
        }
        if self.branches:
            data["branches"] = list(self.branches)
        else:
            data["tag_only"] = self.tag_only
        return data


def commit_sort_key(record: CommitRecord) -> Tuple[int, int, str]:
    return (-record.est_compressed_size, -record.raw_size, record.commit)


def branch_sort_key(entry: Dict[str, Any]) -> Tuple[int, int, str]:
    return (
        -entry["est_compressed_size"],
        -(entry["text_size"] + entry["binary_size"]),
        entry["branch"],
    )


# ============================================================================
# GIT ACCESS & VALIDATION
# ============================================================================


def run_git(
    repo_path: str, args: List[str], check: bool = True
) -> subprocess.CompletedProcess:
    """Run a git command in `repo_path`, capturing text output"""
    return subprocess.run(
        ["git", "-C", repo_path, *args],
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        check=check,
    )


def _stderr_of(error: Exception) -> str:
    stderr = getattr(error, "stderr", None) or ""
    return stderr.strip()[:500] or str(error)


def validate_repo_path(repo_path: str) -> str:
    """Return the absolute repository path or raise ConfigurationError"""
    if not repo_path:
        raise ConfigurationError("Repository path is empty")
    path = os.path.abspath(repo_path)
    if not os.path.exists(path):
        raise ConfigurationError(f'Directory "{path}" does not exist')
    if not os.path.isdir(path):
        raise ConfigurationError(f'"{path}" is not a directory')
    try:
        result = run_git(path, ["rev-parse", "--is-inside-work-tree"], check=False)
    except OSError as e:
        raise ConfigurationError(f"Cannot run git: {e}") from e
    if result.returncode != 0 or result.stdout.strip() != "true":
        raise ConfigurationError(
            f'"{path}" is not inside a git working tree. '
            'Provide a folder initialized with "git init" or cloned.'
        )
    return path


def validate_report_dir(report_dir: str) -> str:
    """
    Check that the report directory is usable and create it if missing.

    Segments may not be "." or "..", nor end with a dot or a space. An existing
    path must be a writable directory.
    """
    if not report_dir:
        raise ConfigurationError("Output directory path is empty")

    segments = [seg for seg in report_dir.replace("\\", "/").split("/") if seg]
    for seg in segments:
        if seg in (".", "..") or seg.endswith(" ") or seg.endswith("."):
            raise ConfigurationError(
                f'Invalid folder name segment "{seg}": segments cannot be "." or "..", '
                "or end with a dot or space"
            )

    path = os.path.abspath(report_dir)
    if os.path.exists(path):
        if not os.path.isdir(path):
            raise ConfigurationError(f'"{path}" exists but is not a directory')
        if not os.access(path, os.W_OK):
            raise ConfigurationError(f'No permission to write to "{path}"')
    else:
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f'Cannot create output directory "{path}": {e}') from e
    return path


def resolve_commit(repo_path: str, rev: str) -> Optional[str]:
    """Commit hash `rev` points at, or None when it does not resolve"""
    result = run_git(
        repo_path, ["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"], check=False
    )
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def detect_trunk(repo_path: str) -> Optional[str]:
    """Return "master" or "main", whichever exists first, else None"""
    for candidate in TRUNK_CANDIDATES:
        if resolve_commit(repo_path, candidate):
            return candidate
    return None


# ============================================================================
# STAGE 1: REF ENUMERATION & COMMIT ATTRIBUTION
# ============================================================================


class CommitAttributor:
    """
    Map every unmerged commit to the branches that reach it.

    Refs, merge hashes and tag hashes are read once. Any git failure here is
    a ConfigurationError: attribution either completes or produces nothing.
    """

    def __init__(
        self,
        repo_path: str,
        trunk: str,
        reporter: Optional[ProgressReporter] = None,
    ):
        self.repo_path = repo_path
        self.trunk = trunk
        self.reporter = reporter or ProgressReporter(quiet=True)
        self.trunk_commit = None
        self.refs: List[Reference] = []

    def _git_lines(self, args: List[str], purpose: str) -> List[str]:
        try:
            result = run_git(self.repo_path, args)
        except subprocess.CalledProcessError as e:
            raise ConfigurationError(f"Failed to {purpose}: {_stderr_of(e)}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot run git: {e}") from e
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def resolve_trunk(self) -> str:
        try:
            commit = resolve_commit(self.repo_path, self.trunk)
        except OSError as e:
            raise ConfigurationError(f"Cannot run git: {e}") from e
        if not commit:
            raise ConfigurationError(
                f'Branch "{self.trunk}" does not exist in repository {self.repo_path}'
            )
        self.trunk_commit = commit
        return commit

    def list_refs(self) -> List[Reference]:
        """Local and remote-tracking branches, without symbolic */HEAD refs"""
        refnames = self._git_lines(
            ["for-each-ref", "--format=%(refname)", "refs/heads", "refs/remotes"],
            "list branches",
        )
        return [
            Reference.from_refname(name)
            for name in refnames
            if not name.endswith("/HEAD")
        ]

    def collect(self) -> List[CommitRecord]:
        """
        Attribute commits.

        Returns:
            CommitRecords in first-seen order: branch commits (branches set,
            in ref order) followed by tag-only commits. Sizes are zero.
        """
        trunk_commit = self.resolve_trunk()
        self.refs = self.list_refs()

        owners_by_commit: Dict[str, Dict[str, None]] = {}
        progress_bar = self.reporter.create_progress_bar(
            total=len(self.refs), desc="Scanning branches", unit=" refs"
        )
        for i, ref in enumerate(self.refs, start=1):
            self.reporter.detail(f"({i}/{len(self.refs)}) Checking branch {ref.short_name}")
            hashes = self._git_lines(
                ["rev-list", ref.name, "--not", trunk_commit, "--no-merges"],
                f"list commits of {ref.short_name}",
            )
            for commit in hashes:
                owners_by_commit.setdefault(commit, {})[ref.short_name] = None
            if progress_bar:
                progress_bar.update(1)
        if progress_bar:
            progress_bar.close()

        merge_hashes = set(
            self._git_lines(["rev-list", "--min-parents=2", "--all"], "list merge commits")
        )
        tag_commits = self._git_lines(
            ["rev-list", "--tags", "--no-walk"], "list tagged commits"
        )

        records = [
            CommitRecord(commit=commit, branches=tuple(owners))
            for commit, owners in owners_by_commit.items()
            if commit not in merge_hashes
        ]
        seen = set(owners_by_commit)
        for commit in tag_commits:
            if commit in seen or commit in merge_hashes:
                continue
            seen.add(commit)
            records.append(CommitRecord(commit=commit, tag_only=True))

        return records


def attribute(repo_path: str, trunk: str) -> List[CommitRecord]:
    """Commits unique to non-trunk branches (and tag-only commits), sizes unset"""
    return CommitAttributor(repo_path, trunk).collect()


# ============================================================================
# STAGE 2: COMMIT SIZE ESTIMATION
# ============================================================================


def parse_numstat_z(output: str) -> List[Dict[str, Any]]:
    """
    Parse `git diff-tree --numstat -z` output into change dicts.

    Regular entries are "<added>\\t<deleted>\\t<path>\\0". Renames leave the
    path empty and follow with "<old path>\\0<new path>\\0". Binary files
    report "-" for both counts.
    """
    tokens = output.split("\0")
    changes = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        i += 1
        if not token:
            continue

        parts = token.split("\t", 2)
        if len(parts) != 3:
            continue
        added_str, deleted_str, file_path = parts

        old_path = None
        if not file_path:
            if i + 1 >= len(tokens):
                break
            old_path, file_path = tokens[i], tokens[i + 1]
            i += 2

        binary = added_str == "-" and deleted_str == "-"
        if binary:
            lines_added = lines_deleted = 0
        else:
            try:
                lines_added = int(added_str)
                lines_deleted = int(deleted_str)
            except ValueError:
                continue

        changes.append(
            {
                "operation": "R" if old_path is not None else "M",
                "file_path": file_path,
                "old_path": old_path,
                "binary": binary,
                "lines_added": lines_added,
                "lines_deleted": lines_deleted,
            }
        )
    return changes


class CommitSizeEstimator:
    """
    Best-effort per-commit size estimation.

    Git failures never propagate: a failed diff gives the commit zero size, a
    failed blob lookup gives that path zero size. Both are recorded in
    `errors`. Commits are measured on a bounded thread pool; results are
    ranked only once every worker has finished.
    """

    def __init__(
        self,
        repo_path: str,
        size_model: Optional[SizeModel] = None,
        reporter: Optional[ProgressReporter] = None,
    ):
        self.repo_path = repo_path
        self.size_model = size_model or SizeModel()
        self.reporter = reporter or ProgressReporter(quiet=True)
        self.errors: List[str] = []

    def _diff_numstat(self, commit: str) -> List[Dict[str, Any]]:
        result = run_git(
            self.repo_path,
            ["diff-tree", "-r", "--root", "--no-commit-id", "--numstat", "-z", "-M", commit],
        )
        return parse_numstat_z(result.stdout)

    def _exists_in_parent(self, commit: str, file_path: str) -> bool:
        # Root commits have no parent, so the lookup fails and the path counts as new
        result = run_git(
            self.repo_path, ["cat-file", "-e", f"{commit}^:{file_path}"], check=False
        )
        return result.returncode == 0

    def _blob_size(self, commit: str, file_path: str) -> int:
        result = run_git(self.repo_path, ["cat-file", "-s", f"{commit}:{file_path}"])
        return int(result.stdout.strip())

    def measure_commit(self, record: CommitRecord) -> Tuple[CommitRecord, List[str]]:
        """Size one commit. Returns the enriched record and its error messages."""
        errors = []
        commit = record.commit
        try:
            changes = self._diff_numstat(commit)
        except (subprocess.CalledProcessError, OSError) as e:
            errors.append(f"{commit}: diff failed: {_stderr_of(e)}")
            return replace(record, text_size=0, binary_size=0, est_compressed_size=0), errors

        text_size = 0
        binary_blobs = []
        for change in changes:
            if not change["binary"]:
                text_size += self.size_model.text_size(
                    change["lines_added"], change["lines_deleted"]
                )
                continue

            # Renamed binaries keep an already-stored blob
            if change["old_path"] is not None:
                continue
            file_path = change["file_path"]
            try:
                if self._exists_in_parent(commit, file_path):
                    continue
                binary_blobs.append((file_path, self._blob_size(commit, file_path)))
            except (subprocess.CalledProcessError, OSError, ValueError) as e:
                errors.append(f"{commit}: size lookup failed for {file_path}: {_stderr_of(e)}")

        enriched = replace(
            record,
            text_size=text_size,
            binary_size=sum(size for _, size in binary_blobs),
            est_compressed_size=self.size_model.estimate(text_size, binary_blobs),
        )
        return enriched, errors

    def estimate_all(
        self, records: Iterable[CommitRecord], jobs: int = 1
    ) -> List[CommitRecord]:
        """
        Measure all commits with up to `jobs` workers.

        Returns:
            Enriched records sorted by estimated compressed size (desc), raw
            size (desc) and commit hash, independent of completion order.
        """
        records = list(records)
        results: List[CommitRecord] = []
        progress_bar = self.reporter.create_progress_bar(
            total=len(records), desc="Estimating commits"
        )

        with ThreadPoolExecutor(max_workers=max(1, int(jobs))) as executor:
            futures = [executor.submit(self.measure_commit, r) for r in records]
            for i, future in enumerate(as_completed(futures), start=1):
                record, errors = future.result()
                results.append(record)
                self.errors.extend(errors)
                if progress_bar:
                    progress_bar.update(1)
                self.reporter.detail(
                    f"[{i}/{len(records)}] {record.commit} -> "
                    f"{format_size_mb(record.est_compressed_size)} "
                    f"text={record.text_size}B binary={record.binary_size}B"
                )

        if progress_bar:
            progress_bar.close()

        results.sort(key=commit_sort_key)
        return results


def estimate_sizes(
    records: Iterable[CommitRecord],
    repo_path: str,
    size_model: Optional[SizeModel] = None,
    jobs: int = 1,
    reporter: Optional[ProgressReporter] = None,
) -> List[CommitRecord]:
    """Records with text, binary and estimated compressed sizes filled in"""
    estimator = CommitSizeEstimator(repo_path, size_model=size_model, reporter=reporter)
    return estimator.estimate_all(records, jobs=jobs)


# ============================================================================
# STAGE 3: AGGREGATION
# ============================================================================


def write_json(output_path: str, data: Any) -> int:
    """Write JSON, creating parent directories. Returns the byte size written."""
    parent = os.path.dirname(output_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return os.path.getsize(output_path)


class DatasetAggregator:
    """
    Base class for report datasets: records are folded in one at a time with
    `process_record`, `finalize` builds the dataset and `export` writes it.
    """

    def __init__(self, reporter: Optional[ProgressReporter] = None):
        self.reporter = reporter or ProgressReporter(quiet=True)

    def process_record(self, record: CommitRecord):
        """Process a single commit record - override in subclasses"""
        pass

    def finalize(self) -> Any:
        """Finalize aggregation - override in subclasses"""
        return {}

    def export(self, output_path: str) -> int:
        """Export aggregated data to JSON"""
        size = write_json(output_path, self.finalize())
        self.reporter.detail(f"Wrote {output_path} ({size:,} bytes)")
        return size


class CommitSizeReport(DatasetAggregator):
    """Per-commit size listing in ranked order"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.records: List[CommitRecord] = []

    def process_record(self, record: CommitRecord):
        self.records.append(record)

    def finalize(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in sorted(self.records, key=commit_sort_key)]


class BranchAggregator(DatasetAggregator):
    """
    Fold commits into per-branch totals and rank branches.

    A commit owned by N branches is charged in full to each of them. Within one
    branch a commit is counted once. Commits that are neither attributed to a
    branch nor tag-only are skipped.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.branches: Dict[str, Dict[str, Any]] = {}
        self._seen: Dict[str, set] = {}
        self.skipped_commits: List[str] = []

    def process_record(self, record: CommitRecord):
        owners = record.owners()
        if not owners:
            self.skipped_commits.append(record.commit)
            return

        for branch in owners:
            seen = self._seen.setdefault(branch, set())
            if record.commit in seen:
                continue
            seen.add(record.commit)

            totals = self.branches.get(branch)
            if totals is None:
                totals = {
                    "branch": branch,
                    "text_size": 0,
                    "binary_size": 0,
                    "est_compressed_size": 0,
                    "commits": [],
                }
                self.branches[branch] = totals
            totals["text_size"] += record.text_size
            totals["binary_size"] += record.binary_size
            totals["est_compressed_size"] += record.est_compressed_size
            totals["commits"].append(record.size_entry())

    def finalize(self) -> Dict[str, List[Dict[str, Any]]]:
        """
        Returns:
            {"full": ranked aggregates with commit detail,
             "light": the same ranking with sizes only}
        """
        full = sorted(
            (
                {
                    "branch": totals["branch"],
                    "est_compressed_size_mb": format_size_mb(
                        totals["est_compressed_size"]
                    ),
                    "text_size": totals["text_size"],
                    "binary_size": totals["binary_size"],
                    "est_compressed_size": totals["est_compressed_size"],
                    "commits": list(totals["commits"]),
                }
                for totals in self.branches.values()
            ),
            key=branch_sort_key,
        )
        light = [
            {
                "branch": entry["branch"],
                "est_compressed_size_mb": entry["est_compressed_size_mb"],
                "text_size": entry["text_size"],
                "binary_size": entry["binary_size"],
            }
            for entry in full
        ]
        return {"full": full, "light": light}

    def export(self, output_path: str) -> int:
        return self.export_full(output_path)

    def export_full(self, output_path: str) -> int:
        return write_json(output_path, self.finalize()["full"])

    def export_light(self, output_path: str) -> int:
        return write_json(output_path, self.finalize()["light"])


def aggregate(records: Iterable[CommitRecord]) -> Dict[str, List[Dict[str, Any]]]:
    """Ranked per-branch totals: {"full": [...], "light": [...]}"""
    aggregator = BranchAggregator()
    for record in records:
        aggregator.process_record(record)
    return aggregator.finalize()


# ============================================================================
# PIPELINE
# ============================================================================


class BranchWeightAnalyzer:
    """
    Runs attribution, estimation and aggregation in order and writes reports.
    Aggregation starts only after every commit has been estimated.
    """

    def __init__(
        self,
        repo_path: str,
        trunk: str,
        size_model: Optional[SizeModel] = None,
        reporter: Optional[ProgressReporter] = None,
        jobs: int = 1,
        memory_limit_mb: Optional[float] = None,
    ):
        self.repo_path = os.path.abspath(repo_path)
        self.trunk = trunk
        self.size_model = size_model or SizeModel()
        self.reporter = reporter or ProgressReporter()
        self.jobs = max(1, int(jobs))
        self.metrics = PerformanceMetrics()
        self.memory_monitor = MemoryMonitor(limit_mb=memory_limit_mb)
        self.errors: List[str] = []
        self.records: List[CommitRecord] = []
        self.commit_report = CommitSizeReport(reporter=self.reporter)
        self.branch_aggregator = BranchAggregator(reporter=self.reporter)

    def run(self) -> Dict[str, List[Dict[str, Any]]]:
        start_time = time.time()

        self.reporter.stage_start(
            "Attribution", f"Collecting commits not merged into {self.trunk}..."
        )
        attributor = CommitAttributor(self.repo_path, self.trunk, reporter=self.reporter)
        attributed = attributor.collect()
        self.metrics.refs_scanned = len(attributor.refs)
        self.metrics.commits_attributed = len(attributed)
        self.metrics.tag_only_commits = sum(1 for r in attributed if r.tag_only)
        self.metrics.stage_times["attribution"] = self.reporter.stage_complete(
            "Attribution",
            {
                "Refs scanned": f"{self.metrics.refs_scanned:,}",
                "Unmerged commits": f"{self.metrics.commits_attributed:,}",
                "Tag-only commits": f"{self.metrics.tag_only_commits:,}",
            },
        )
        self.memory_monitor.check_memory()

        self.reporter.stage_start(
            "Size Estimation", f"Measuring {len(attributed):,} commits with {self.jobs} job(s)..."
        )
        estimator = CommitSizeEstimator(
            self.repo_path, size_model=self.size_model, reporter=self.reporter
        )
        self.records = estimator.estimate_all(attributed, jobs=self.jobs)
        self.errors.extend(estimator.errors)
        self.metrics.commits_estimated = len(self.records)
        self.metrics.estimation_errors = len(estimator.errors)
        self.metrics.stage_times["estimation"] = self.reporter.stage_complete(
            "Size Estimation",
            {
                "Commits estimated": f"{self.metrics.commits_estimated:,}",
                "Errors": f"{self.metrics.estimation_errors:,}",
            },
        )
        self.memory_monitor.check_memory()

        self.reporter.stage_start("Aggregation", "Ranking branches by estimated size...")
        for record in self.records:
            self.commit_report.process_record(record)
            self.branch_aggregator.process_record(record)
        result = self.branch_aggregator.finalize()
        self.metrics.branches_ranked = len(result["full"])
        self.metrics.stage_times["aggregation"] = self.reporter.stage_complete(
            "Aggregation", {"Branches ranked": f"{self.metrics.branches_ranked:,}"}
        )

        self.memory_monitor.check_memory()
        self.metrics.memory_peak_mb = self.memory_monitor.get_peak()
        self.metrics.total_time = time.time() - start_time
        return result

    def export(self, output_dir: str) -> Dict[str, str]:
        """Write all reports. Returns dataset name -> file name."""
        self.reporter.stage_start("Export", f"Writing reports to {output_dir}...")
        datasets = {
            "commits": COMMITS_REPORT,
            "branches": BRANCHES_REPORT,
            "branches_light": BRANCHES_LIGHT_REPORT,
        }
        self.commit_report.export(os.path.join(output_dir, COMMITS_REPORT))
        self.branch_aggregator.export_full(os.path.join(output_dir, BRANCHES_REPORT))
        self.branch_aggregator.export_light(os.path.join(output_dir, BRANCHES_LIGHT_REPORT))

        if self.errors:
            with open(os.path.join(output_dir, ERRORS_REPORT), "w", encoding="utf-8") as f:
                f.write("\n".join(self.errors) + "\n")
            datasets["errors"] = ERRORS_REPORT
            self.reporter.warning(
                f"{len(self.errors)} git lookups failed; affected sizes count as zero "
                f"(see {ERRORS_REPORT})"
            )

        self.reporter.stage_complete(
            "Export", {name: os.path.join(output_dir, f) for name, f in datasets.items()}
        )
        return datasets


# ============================================================================
# MANIFEST
# ============================================================================


def generate_manifest(
    output_dir: str, analyzer: BranchWeightAnalyzer, datasets: Dict[str, str]
) -> Dict[str, Any]:
    """Generate manifest.json with run and dataset metadata"""
    manifest = {
        "generator_version": VERSION,
        "schema_version": SCHEMA_VERSION,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "repository": analyzer.repo_path,
        "trunk": analyzer.trunk,
        "attribution": "overlapping",
        "size_model": analyzer.size_model.to_dict(),
        "performance_metrics": analyzer.metrics.to_dict(),
        "datasets": {},
    }

    for dataset_name, file_path in datasets.items():
        full_path = os.path.join(output_dir, file_path)
        if os.path.exists(full_path):
            with open(full_path, "rb") as f:
                data = f.read()

            manifest["datasets"][dataset_name] = {
                "file": file_path,
                "file_size_bytes": len(data),
                "sha256": hashlib.sha256(data).hexdigest(),
            }

    write_json(os.path.join(output_dir, "manifest.json"), manifest)
    return manifest


# ============================================================================
# CLI INTERFACE
# ============================================================================


def prompt_until_valid(text: str, validate, reporter: ProgressReporter, default=None):
    """Ask until `validate` accepts the answer; return what it returns"""
    while True:
        answer = click.prompt(text, default=default)
        try:
            return validate(answer)
        except ConfigurationError as e:
            reporter.error(str(e))


def require_branch(repo_path: str, name: str) -> str:
    if not resolve_commit(repo_path, name):
        raise ConfigurationError(f'Branch "{name}" does not exist in repository.')
    return name


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.argument(
    "repo_path",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    required=False,
)
@click.option(
    "-r",
    "--repo",
    "repo_option",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Git repository to analyze (alternative to the REPO_PATH argument)",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(file_okay=False),
    help=f"Report directory (default: ./{DEFAULT_REPORT_DIRNAME})",
)
@click.option(
    "-b",
    "--branch",
    help="Trunk branch; unmerged history is measured against it (default: master or main)",
)
@click.option(
    "-y",
    "--no-prompt",
    is_flag=True,
    help="Never prompt; use defaults and auto-detection for missing values",
)
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path (.yaml or .json)",
)
@click.option(
    "--preset",
    type=click.Choice(sorted(ConfigResolver.PRESETS)),
    help="Binary compression model: per-extension coefficients or one uniform coefficient",
)
@click.option("-j", "--jobs", type=click.IntRange(min=1), help="Parallel estimation workers")
@click.option(
    "--average-line-size", type=click.IntRange(min=1), help="Bytes counted per changed line"
)
@click.option("--memory-limit", type=float, help="Memory limit in MB")
@click.option("--profile", is_flag=True, help="Enable performance profiling")
@click.option("--profile-output", default="profile_stats.prof", help="Profile output file")
@click.option("-q", "--quiet", is_flag=True, help="Suppress progress output")
@click.option(
    "-v", "--verbose", is_flag=True, help="Show per-branch and per-commit progress"
)
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option(
    "--dry-run", is_flag=True, help="Show the run plan without analyzing the repository"
)
@click.version_option(version=VERSION)
def main(repo_path, repo_option, output, branch, no_prompt, config, preset, **kwargs):
    """
    Estimate how much disk weight each branch's unmerged history adds.

    Commits reachable from several branches are charged in full to each of
    them (overlapping attribution), so branch figures do not add up.
    """
    colorama_init(autoreset=True)

    cli_values = {
        "trunk": branch,
        "output": output,
        "jobs": kwargs.get("jobs"),
        "average_line_size": kwargs.get("average_line_size"),
        "memory_limit": kwargs.get("memory_limit"),
        "profile": kwargs.get("profile") or None,
        "quiet": kwargs.get("quiet") or None,
        "verbose": kwargs.get("verbose") or None,
        "no_color": kwargs.get("no_color") or None,
    }

    repo_path = repo_option or repo_path
    if not repo_path:
        if no_prompt:
            repo_path = os.getcwd()
        else:
            repo_path = prompt_until_valid(
                "Git repo path",
                validate_repo_path,
                ProgressReporter(use_colors=not kwargs.get("no_color")),
                default=os.getcwd(),
            )

    try:
        resolver = ConfigResolver(cli_values, config, preset, repo_path)
    except ConfigurationError as e:
        ProgressReporter(use_colors=not kwargs.get("no_color")).error(str(e))
        sys.exit(1)

    quiet = resolver.get("quiet", False)
    verbose = resolver.get("verbose", False)
    reporter = ProgressReporter(
        quiet=quiet, verbose=verbose, use_colors=not resolver.get("no_color", False)
    )
    if resolver.config_path:
        reporter.info(f"Using configuration: {resolver.config_path}")
    for message in resolver.warnings:
        reporter.warning(message)

    try:
        repo_path = validate_repo_path(repo_path)
        size_model = SizeModel.from_resolver(resolver)

        output_dir = resolver.get("output")
        default_dir = os.path.join(os.getcwd(), DEFAULT_REPORT_DIRNAME)
        if not output_dir:
            if no_prompt:
                output_dir = default_dir
            else:
                output_dir = prompt_until_valid(
                    "Output folder path", validate_report_dir, reporter, default=default_dir
                )

        trunk = resolver.get("trunk")
        if not trunk:
            detected = detect_trunk(repo_path)
            if no_prompt:
                if not detected:
                    raise ConfigurationError(
                        'Could not auto-detect "master" or "main". Use --branch to specify.'
                    )
                trunk = detected
                reporter.info(f"Using detected default branch: {trunk}")
            else:
                trunk = prompt_until_valid(
                    "Default branch name"
                    if detected
                    else 'Default branch name (no "master" or "main" found)',
                    lambda name: require_branch(repo_path, name),
                    reporter,
                    default=detected,
                )
        require_branch(repo_path, trunk)

        try:
            jobs = int(resolver.get("jobs", 1))
            memory_limit = resolver.get("memory_limit")
            if memory_limit is not None:
                memory_limit = float(memory_limit)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid jobs or memory_limit value: {e}") from e
        if jobs < 1:
            raise ConfigurationError("jobs must be at least 1")
        profile = resolver.get("profile", False)
    except ConfigurationError as e:
        reporter.error(str(e))
        sys.exit(1)

    if kwargs.get("dry_run"):
        reporter.info("DRY RUN MODE - No analysis will be performed")
        reporter.info(f"Repository:     {repo_path}")
        reporter.info(f"Report folder:  {os.path.abspath(output_dir)}")
        reporter.info(f"Default branch: {trunk}")
        reporter.info(f"Jobs: {jobs}  Preset: {resolver.preset_name}")
        reporter.info("Reports to generate:")
        for name in (COMMITS_REPORT, BRANCHES_REPORT, BRANCHES_LIGHT_REPORT, "manifest.json"):
            reporter.info(f"  ✓ {name}")
        return

    try:
        output_dir = validate_report_dir(output_dir)
    except ConfigurationError as e:
        reporter.error(str(e))
        sys.exit(1)

    reporter.info(f"Repository:     {repo_path}")
    reporter.info(f"Report folder:  {output_dir}")
    reporter.info(f"Default branch: {trunk}")

    profile_path = (
        os.path.join(output_dir, resolver.get("profile_output") or kwargs["profile_output"])
        if profile
        else None
    )

    try:
        with ProfilingContext(enabled=profile, output_path=profile_path):
            analyzer = BranchWeightAnalyzer(
                repo_path,
                trunk,
                size_model=size_model,
                reporter=reporter,
                jobs=jobs,
                memory_limit_mb=memory_limit,
            )
            result = analyzer.run()
            datasets = analyzer.export(output_dir)
            generate_manifest(output_dir, analyzer, datasets)
    except ConfigurationError as e:
        reporter.error(str(e))
        sys.exit(1)
    except Exception as e:
        reporter.error(f"Analysis failed: {str(e)}")
        if verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)

    summary_stats = {
        "Repository": repo_path,
        "Output directory": output_dir,
        "Unmerged commits": f"{analyzer.metrics.commits_attributed:,}",
        "Branches ranked": f"{analyzer.metrics.branches_ranked:,}",
        "Attribution": "overlapping (shared commits count fully for every branch)",
    }
    for entry in result["light"][:10]:
        summary_stats[f"  {entry['branch']}"] = (
            f"{entry['est_compressed_size_mb']} "
            f"(text {entry['text_size']:,} B, binary {entry['binary_size']:,} B)"
        )

    reporter.summary(summary_stats)
    reporter.success(f"Analysis complete! Results saved to: {output_dir}")


if __name__ == "__main__":
    main()
