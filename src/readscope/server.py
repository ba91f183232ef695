"""
MCP server for readscope. Exposes scope lookup and readability ratings to editors and agents.

IMPORTANT: Uses stdio transport. Never print to stdout; all logging goes to stderr.
"""

import functools
import inspect
import logging
import os
import sys
import threading
import time
from pathlib import Path

# All logging must go to stderr in stdio MCP mode
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s %(name)s: %(message)s",
    stream=sys.stderr,
)

DEFAULT_REQUEST_LOG = Path.home() / ".local" / "log" / "readscope-mcp.log"

_request_log = logging.getLogger("readscope.requests")
_request_log.setLevel(logging.INFO)
_request_log.propagate = False


def configure_request_log(path: str | os.PathLike | None = None) -> Path:
    """
    Send tool invocations to a log file (tail -f it to watch usage live).

    The path defaults to $READSCOPE_REQUEST_LOG, then DEFAULT_REQUEST_LOG.
    Calling again moves the log to the new file.
    """
    target = Path(path or os.environ.get("READSCOPE_REQUEST_LOG") or DEFAULT_REQUEST_LOG)
    target.parent.mkdir(parents=True, exist_ok=True)
    for handler in list(_request_log.handlers):
        _request_log.removeHandler(handler)
        handler.close()
    handler = logging.FileHandler(target)
    handler.setFormatter(logging.Formatter("%(asctime)s  %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
    _request_log.addHandler(handler)
    return target

from mcp.server.fastmcp import FastMCP

from .engine import RseScoringEngine
from .errors import ReadscopeError
from .improve import rank_improvements
from .models import RatingConfig
from .pipeline import RatingPipeline
from .scopes import ScopeTree

log = logging.getLogger(__name__)


# Tool replies that report a failure instead of raising.
_FAILURE_PREFIXES = ("Rating failed:", "Cannot parse", "Invalid line range", "Method not found", "No scope")


def _log_tool(fn):
    """Log every tool call with its arguments, duration and the first line of its reply."""
    sig = inspect.signature(fn)

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        bound = sig.bind(*args, **kwargs)
        bound.apply_defaults()
        params = ", ".join(f"{k}={v!r}" for k, v in bound.arguments.items())
        _request_log.info("→ %s(%s)", fn.__name__, params)
        t0 = time.monotonic()
        try:
            reply = fn(*args, **kwargs)
        except Exception as exc:
            _request_log.info("✗ %s  %.3fs  %s: %s", fn.__name__, time.monotonic() - t0, type(exc).__name__, exc)
            raise
        first_line = reply.split("\n", 1)[0]
        mark = "✗" if first_line.startswith(_FAILURE_PREFIXES) else "←"
        _request_log.info("%s %s  %.3fs  %s", mark, fn.__name__, time.monotonic() - t0, first_line)
        return reply

    return wrapper


mcp = FastMCP(
    "readscope",
    instructions=(
        "readscope rates the readability of Java methods with an external model "
        "and finds the smallest lexical scope around a line range. Scores are "
        "cached per file by exact method text, so re-rating an unchanged file is free."
    ),
)

# One pipeline per engine directory so caches survive between tool calls.
_pipelines: dict[str, RatingPipeline] = {}
_pipelines_lock = threading.Lock()


def _pipeline(engine_dir: str) -> RatingPipeline:
    key = str(Path(engine_dir or os.getcwd()).resolve())
    with _pipelines_lock:
        if key not in _pipelines:
            _pipelines[key] = RatingPipeline(RseScoringEngine(RatingConfig(engine_dir=key)))
        return _pipelines[key]


# ── Tools ────────────────────────────────────────────────────────────────────

@mcp.tool()
@_log_tool
def rate_file(path: str, engine_dir: str = ".") -> str:
    """
    Rate the readability of every method in a Java file (0 = unreadable, 1 = readable).

    Args:
        path: Path to the Java source file.
        engine_dir: Directory holding the readability model RSE.jar.
    """
    fp = str(Path(path).resolve())
    try:
        rated = _pipeline(engine_dir).rate(fp)
    except ReadscopeError as e:
        return f"Rating failed: {e}"
    if not rated:
        return f"No methods found in {fp}"

    lines = [f"{len(rated)} methods in {fp}:"]
    for r in rated:
        doc = ", documented" if r.has_doc_comment() else ""
        lines.append(
            f"  {r.method_name:<30} L{r.start_line(False)}-{r.end_line(False)}  "
            f"{r.score:.2f} ({r.band}{doc})"
        )
    return "\n".join(lines)


@mcp.tool()
@_log_tool
def surrounding_scope(path: str, start_line: int, end_line: int) -> str:
    """
    Find the smallest scope (method, loop, conditional, class, ...) containing a line range.

    Args:
        path: Path to the Java source file.
        start_line: First line of the range (1-indexed).
        end_line: Last line of the range (1-indexed).
    """
    try:
        tree = ScopeTree.from_file(str(Path(path).resolve()))
    except ReadscopeError as e:
        return f"Cannot parse {path}: {e}"
    if start_line < 1 or end_line < start_line:
        return f"Invalid line range: {start_line}-{end_line}"
    scope = tree.get_surrounding_scope(start_line - 1, end_line - 1)
    if scope is None:
        return f"No scope surrounds lines {start_line}-{end_line}"
    return f"{scope.name} (lines {scope.start_line + 1}-{scope.end_line + 1})\n\n{scope.code}"


@mcp.tool()
@_log_tool
def suggest_improvements(path: str, method: str, engine_dir: str = ".", limit: int = 5) -> str:
    """
    Rank the code metrics whose improvement would most raise a method's readability.

    Args:
        path: Path to the Java source file.
        method: Name of the method to analyse.
        engine_dir: Directory holding the readability model RSE.jar.
        limit: Maximum number of suggestions.
    """
    fp = str(Path(path).resolve())
    try:
        rated = _pipeline(engine_dir).rate(fp)
    except ReadscopeError as e:
        return f"Rating failed: {e}"

    matches = [r for r in rated if r.method_name == method]
    if not matches:
        return f"Method not found: {method}"

    lines: list[str] = []
    for r in matches:
        lines.append(f"{r.method_name} (L{r.start_line(False)}-{r.end_line(False)}): score {r.score:.3f}")
        for imp in rank_improvements(r.result):
            if imp.rank > limit:
                break
            lines.append(
                f"  {imp.rank}. {imp.metric}: {imp.actual_value} → {imp.improved_value:.3f} "
                f"(+{imp.score_gain:.3f})"
            )
    return "\n".join(lines)


# ── Entry point ───────────────────────────────────────────────────────────────

def run_server(http: bool = False, port: int = 8000, request_log: str | None = None) -> None:
    log_path = configure_request_log(request_log)
    log.info("Request log: %s", log_path)
    if http:
        mcp.settings.host = "127.0.0.1"
        mcp.settings.port = port
        mcp.run(transport="streamable-http")
    else:
        mcp.run(transport="stdio")


if __name__ == "__main__":
    run_server()
