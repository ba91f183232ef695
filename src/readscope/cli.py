"""CLI entry point for readscope."""

import argparse
import logging
import sys
from pathlib import Path

from .discover import discover_files
from .engine import RseScoringEngine
from .errors import ReadscopeError
from .improve import COEFFICIENTS, INTERCEPT, MEANS, load_ranking_tables, rank_improvements
from .models import RatedScope, RatingConfig
from .pipeline import RatingPipeline
from .scopes import ScopeTree
from .store import ScoreStore

log = logging.getLogger(__name__)


def _config_from_args(args: argparse.Namespace) -> RatingConfig:
    return RatingConfig(
        engine_dir=str(Path(args.engine_dir).resolve()),
        java=args.java,
        timeout=args.timeout,
        max_workers=args.workers,
    )


def _make_pipeline(config: RatingConfig) -> RatingPipeline:
    return RatingPipeline(RseScoringEngine(config), max_workers=config.max_workers)


def _format_rated(r: RatedScope) -> str:
    doc = "  (documented)" if r.has_doc_comment() else ""
    return (
        f"  L{r.start_line(zero_indexed=False)}-{r.end_line(zero_indexed=False):<5} "
        f"{r.score:.2f}  {r.band:<6}  {r.method_name}{doc}"
    )


def cmd_rate(args: argparse.Namespace) -> int:
    target = Path(args.path).resolve()
    config = _config_from_args(args)
    if target.is_dir():
        files = discover_files(str(target), config.exclude_dirs)
    else:
        files = [str(target)]

    pipeline = _make_pipeline(config)
    store = ScoreStore(args.db) if args.db else None
    errors = 0
    try:
        for fp in files:
            if store:
                store.load_into(pipeline.cache, fp)
            try:
                rated = pipeline.rate(fp)
            except ReadscopeError as e:
                print(f"{fp}: {e}", file=sys.stderr)
                errors += 1
                continue
            if store:
                store.save_from(pipeline.cache, fp)
            if not rated:
                continue
            print(fp)
            for r in rated:
                print(_format_rated(r))
    finally:
        if store:
            store.close()

    if errors:
        print(f"  errors:  {errors}", file=sys.stderr)
        return 1
    return 0


def cmd_scope(args: argparse.Namespace) -> int:
    try:
        tree = ScopeTree.from_file(str(Path(args.file).resolve()))
    except ReadscopeError as e:
        print(f"{args.file}: {e}", file=sys.stderr)
        return 1

    if args.start < 1 or args.end < args.start:
        print(f"Invalid line range: {args.start}-{args.end}", file=sys.stderr)
        return 1
    scope = tree.get_surrounding_scope(args.start - 1, args.end - 1)
    if scope is None:
        print(f"No scope surrounds lines {args.start}-{args.end}")
        return 1

    print(f"{scope.name}  (lines {scope.start_line + 1}-{scope.end_line + 1})")
    parent = scope.parent
    while parent is not None:
        if parent.is_scope():
            print(f"  in {parent.name}  (lines {parent.start_line + 1}-{parent.end_line + 1})")
        parent = parent.parent
    return 0


def cmd_improve(args: argparse.Namespace) -> int:
    fp = str(Path(args.file).resolve())
    if args.tables:
        coefficients, means, intercept = load_ranking_tables(args.tables)
    else:
        coefficients, means, intercept = COEFFICIENTS, MEANS, INTERCEPT

    pipeline = _make_pipeline(_config_from_args(args))
    try:
        rated = pipeline.rate(fp)
    except ReadscopeError as e:
        print(f"{fp}: {e}", file=sys.stderr)
        return 1

    matches = [r for r in rated if r.method_name == args.method]
    if not matches:
        print(f"Method not found: {args.method}")
        return 1

    for r in matches:
        print(f"\nMETHOD  {r.method_name}  L{r.start_line(False)}-{r.end_line(False)}  score {r.score:.3f}")
        found = False
        for imp in rank_improvements(r.result, coefficients, means, intercept):
            found = True
            actual = f"{imp.actual_value:.3f}" if imp.actual_value is not None else "n/a"
            print(
                f"  {imp.rank:2}. {imp.metric:<36} {actual:>9} → {imp.improved_value:<9.3f} "
                f"score {imp.actual_score:.3f} → {imp.improved_score:.3f}"
            )
        if not found:
            print("  no single metric change would improve this method")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from .server import run_server
    run_server(http=args.http, port=args.port, request_log=args.request_log)
    return 0


def _add_engine_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--engine-dir", default=".", help="Directory holding RSE.jar (default: .)")
    p.add_argument("--java", default="java", help="Java executable (default: java)")
    p.add_argument("--timeout", type=float, default=120.0, help="Seconds per engine call")
    p.add_argument("--workers", type=int, help="Max concurrent engine calls (default: CPU count)")


def main() -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    parser = argparse.ArgumentParser(
        prog="readscope",
        description="Per-scope readability scores for Java sources",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    # rate
    p = sub.add_parser("rate", help="Rate every method of a file or directory")
    p.add_argument("path", nargs="?", default=".", help="Java file or project root (default: .)")
    p.add_argument("--db", help="DuckDB file to reuse scores across runs")
    _add_engine_args(p)

    # scope
    p = sub.add_parser("scope", help="Show the smallest scope around a line range")
    p.add_argument("file", help="Java file")
    p.add_argument("start", type=int, help="First line (1-indexed)")
    p.add_argument("end", type=int, help="Last line (1-indexed)")

    # improve
    p = sub.add_parser("improve", help="Rank metric changes that would improve a method")
    p.add_argument("file", help="Java file")
    p.add_argument("method", help="Method name")
    p.add_argument("--tables", help="JSON file with coefficients/means/intercept")
    _add_engine_args(p)

    # serve
    p = sub.add_parser("serve", help="Start MCP server")
    p.add_argument("--http", action="store_true", help="HTTP transport instead of stdio")
    p.add_argument("--port", type=int, default=8000, help="HTTP port (default: 8000)")
    p.add_argument("--request-log", help="Tool request log file (default: $READSCOPE_REQUEST_LOG or ~/.local/log/readscope-mcp.log)")

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger("readscope").setLevel(logging.DEBUG)

    handlers = {
        "rate": cmd_rate,
        "scope": cmd_scope,
        "improve": cmd_improve,
        "serve": cmd_serve,
    }

    sys.exit(handlers[args.command](args))


if __name__ == "__main__":
    main()
