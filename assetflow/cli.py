"""CLI entrypoints for assetflow commands."""

from __future__ import annotations

import argparse
import signal
import sys
from pathlib import Path

from .config import ConfigError, load_config
from .errors import CleanError, SetupError, WatcherError
from .logging import configure_logging
from .models import BuildMode
from .pipeline import Pipeline
from .service import LiveReloadServer


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Project root containing assetflow.yml (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="assetflow",
        description="Build front-end assets into a deployable output tree.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log output to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build",
        help="One-shot production build (minified, no source maps).",
    )
    _add_verbose_option(build_parser, suppress_default=True)
    _add_path_argument(build_parser)
    build_parser.add_argument(
        "--no-clean",
        action="store_true",
        help="Keep the existing output tree; unchanged images are skipped.",
    )

    dev_parser = subparsers.add_parser(
        "dev",
        help="Development build, live-reload server and file watcher.",
    )
    _add_verbose_option(dev_parser, suppress_default=True)
    _add_path_argument(dev_parser)
    dev_parser.add_argument("--host", default=None, help="Interface for the dev server.")
    dev_parser.add_argument("--port", type=int, default=None, help="Port for the dev server.")

    return parser


def _raise_interrupt(signum, frame) -> None:  # pragma: no cover - signal path
    raise KeyboardInterrupt


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for assetflow commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        config = load_config(Path(args.path))
    except ConfigError as exc:
        parser.exit(1, f"assetflow: invalid configuration: {exc}\n")

    if args.command == "build":
        pipeline = Pipeline(config, BuildMode.PRODUCTION)
        try:
            report = pipeline.run_build(clean=not bool(getattr(args, "no_clean", False)))
        except CleanError as exc:
            parser.exit(1, f"assetflow build failed: {exc}\n")
        if not report.ok:
            failed = ", ".join(sorted(report.setup_errors))
            parser.exit(1, f"assetflow build failed: could not run {failed}\nRun with --verbose for more details.\n")
        written = sum(len(result.produced) for result in report.results.values())
        errors = len(report.file_errors)
        message = f"Built {written} files into {_relativize(pipeline.output_dir)}"
        if errors:
            message += f" ({errors} asset errors)"
        print(message)
    elif args.command == "dev":
        host = args.host or config.server.host
        port = args.port if args.port is not None else config.server.port
        pipeline = Pipeline(config, BuildMode.DEVELOPMENT)
        server = LiveReloadServer(host, port)
        signal.signal(signal.SIGTERM, _raise_interrupt)
        try:
            pipeline.run_dev(server)
        except KeyboardInterrupt:
            print("Stopped.")
        except WatcherError as exc:
            parser.exit(1, f"assetflow dev stopped: {exc}\n")
        except (CleanError, SetupError) as exc:
            parser.exit(1, f"assetflow dev failed: {exc}\n")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
