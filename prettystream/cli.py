from __future__ import annotations
import argparse, difflib, json, logging, sys
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

from .highlight import render_document
from .jobs import EmptyInputError, Event, FormatSession, PipelineConfig, ProgressEvent

log = logging.getLogger("prettystream")

CONFIG_FILENAME = "prettystream.config.json"

# ------------------------------ Utilities ------------------------------
def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")

def _normalize_eol(s: str) -> str:
    return s.replace("\r\n", "\n").replace("\r", "\n")

def _write_text(path: Path, data: str) -> None:
    data = _normalize_eol(data)
    if not data.endswith("\n"):
        data += "\n"
    path.write_text(data, encoding="utf-8")

# ------------------------------ Config ------------------------------
DEFAULT_CONFIG: Dict[str, Any] = {
    "chunk_size": 1_000_000,
    "snap_window": 2000,
    "indent": 2,
    "yield_threshold": 150_000,
    "yield_delay": 0.001,
}

def _load_project_config(start_dir: Path) -> Dict[str, Any]:
    cur = start_dir
    root = Path(cur.anchor)
    while True:
        p = cur / CONFIG_FILENAME
        if p.exists():
            try:
                data = json.loads(p.read_text(encoding="utf-8"))
            except (OSError, ValueError) as ex:
                log.warning("ignoring %s: %s", p, ex)
                return {}
            if not isinstance(data, dict):
                log.warning("ignoring %s: expected a JSON object", p)
                return {}
            log.debug("loaded config from %s", p)
            return data
        if cur == root:
            break
        cur = cur.parent
    return {}

def _build_config(args: argparse.Namespace, start_dir: Optional[Path] = None) -> PipelineConfig:
    cfg = DEFAULT_CONFIG.copy()
    known = {f.name for f in fields(PipelineConfig)}
    for k, v in _load_project_config(start_dir or Path.cwd()).items():
        if k in known:
            cfg[k] = v
        else:
            log.warning("unknown config key %r", k)

    if args.indent is not None: cfg["indent"] = args.indent
    if args.chunk_size is not None: cfg["chunk_size"] = args.chunk_size
    _validate_config(cfg)
    return PipelineConfig(**cfg)

# name -> (type, smallest allowed value)
_CONFIG_LIMITS: Dict[str, Any] = {
    "chunk_size": (int, 1),
    "snap_window": (int, 0),
    "indent": (int, 0),
    "yield_threshold": (int, 0),
    "yield_delay": ((int, float), 0),
}

def _validate_config(cfg: Dict[str, Any]) -> None:
    for key, (typ, low) in _CONFIG_LIMITS.items():
        v = cfg[key]
        if isinstance(v, bool) or not isinstance(v, typ):
            what = "an integer" if typ is int else "a number"
            raise ValueError(f"{key} must be {what}, got {v!r}")
        if v < low:
            raise ValueError(f"{key} must be >= {low}, got {v!r}")

def _expand_files(patterns: List[str]) -> List[Path]:
    out: List[Path] = []
    for pat in patterns:
        if any(ch in pat for ch in "*?[]"):
            out.extend([p for p in Path().glob(pat) if p.is_file()])
        else:
            p = Path(pat)
            if p.is_file():
                out.append(p)
    seen, uniq = set(), []
    for p in out:
        rp = p.resolve()
        if rp not in seen:
            seen.add(rp); uniq.append(p)
    return uniq

# ------------------------------ Running jobs ------------------------------
class _ProgressPrinter:
    """Single status line on stderr, rewritten in place."""

    def __init__(self, stream: TextIO, label: str):
        self.stream = stream
        self.label = label
        self.shown = False

    def __call__(self, event: Event) -> None:
        if not isinstance(event, ProgressEvent):
            return
        detail = f" {event.detail}" if event.detail else ""
        self.stream.write(f"\r{self.label}: [{event.percent:3d}%] {event.stage}{detail}\033[K")
        self.stream.flush()
        self.shown = True

    def finish(self) -> None:
        if self.shown:
            self.stream.write("\n")
            self.shown = False

def _run_job(text: str, cfg: PipelineConfig, label: str, quiet: bool) -> FormatSession:
    printer = None if quiet else _ProgressPrinter(sys.stderr, label)
    session = FormatSession(cfg, on_event=printer)
    try:
        session.format(_normalize_eol(text), background=False)
    finally:
        if printer: printer.finish()
    return session

def _report(session: FormatSession, label: str) -> bool:
    if session.error is not None:
        print(f"{label}: error: Invalid JSON: {session.error.message}", file=sys.stderr)
        return False
    res = session.result
    log.info("%s: %d lines in %dms", label, res.total_lines, res.ms)
    return True

# ------------------------------ CLI ------------------------------
def main(argv: List[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    ap = argparse.ArgumentParser(description="Pretty-print and syntax-highlight JSON in chunks (prettystream)")
    ap.add_argument("paths", nargs="*", help="Files or globs to format")
    ap.add_argument("--write", "-w", action="store_true", help="Write changes to files")
    ap.add_argument("--check", action="store_true", help="Exit 1 if any files would be changed")
    ap.add_argument("--diff", action="store_true", help="Show unified diff for changes")
    ap.add_argument("--stdin", action="store_true", help="Read from stdin and write to stdout")
    ap.add_argument("--html", action="store_true",
                    help="Emit highlighted HTML (next to each file as <name>.html, or to stdout with --stdin)")
    ap.add_argument("--indent", type=int, help="Indent size (default 2)")
    ap.add_argument("--chunk-size", type=int, help="Target characters per highlighted chunk (default 1000000)")
    ap.add_argument("--quiet", "-q", action="store_true", help="No progress output")
    ap.add_argument("--verbose", "-v", action="count", default=0, help="More logging (-vv for debug)")
    args = ap.parse_args(argv)

    level = logging.WARNING if args.verbose == 0 else logging.INFO if args.verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        cfg = _build_config(args)
    except ValueError as ex:
        ap.error(str(ex))

    if args.stdin:
        try:
            session = _run_job(sys.stdin.read(), cfg, "<stdin>", args.quiet)
        except EmptyInputError as ex:
            print(f"<stdin>: error: {ex}", file=sys.stderr)
            return 1
        if not _report(session, "<stdin>"):
            return 1
        if args.html:
            sys.stdout.write(render_document(session.chunks, title="stdin"))
        else:
            sys.stdout.write(session.result.formatted + "\n")
        return 0

    files = _expand_files(args.paths) if args.paths else []
    if not files:
        print("prettystream: No input files. Provide paths or use --stdin.", file=sys.stderr)
        return 2

    changed = 0
    failed = 0
    for f in files:
        original = _read_text(f)
        try:
            session = _run_job(original, cfg, str(f), args.quiet)
        except EmptyInputError as ex:
            print(f"{f}: error: {ex}", file=sys.stderr)
            failed += 1
            continue
        if not _report(session, str(f)):
            failed += 1
            continue

        if args.html:
            out = f.with_name(f.name + ".html")
            out.write_text(render_document(session.chunks, title=f.name), encoding="utf-8")
            log.info("wrote %s", out)

        formatted = session.result.formatted + "\n"
        norm_original = _normalize_eol(original)
        if not norm_original.endswith("\n"):
            norm_original += "\n"

        if formatted != norm_original:
            changed += 1
            if args.diff and not args.write:
                diff = difflib.unified_diff(
                    norm_original.splitlines(keepends=True),
                    formatted.splitlines(keepends=True),
                    fromfile=str(f),
                    tofile=str(f) + " (formatted)",
                )
                sys.stdout.writelines(diff)
            if args.write:
                try:
                    _write_text(f, formatted)
                except (OSError, UnicodeError) as ex:
                    print(f"{f}: error: cannot write: {ex}", file=sys.stderr)
                    failed += 1

    if args.check and (changed or failed):
        return 1
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
