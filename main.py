"""
main.py — CAB Report Renderer — CLI Entry Point.

Reads a generated board report (text file or stdin), builds the Document
once, and runs any combination of output stages from it.

Usage:
    python main.py --input report.md --all
    python main.py --input report.md --html --side-data board.yaml
    cat report.md | python main.py --input - --tree
    python main.py --input report.md --pdf --config custom.yaml --log-level DEBUG

Outputs (output/):
    <prefix>_Report_<YYYYMMDD>_<HHMMSS>.html   — self-contained HTML export
    <prefix>_Report_<YYYYMMDD>_<HHMMSS>.pdf    — print-ready PDF export
    <prefix>_Report_<YYYYMMDD>_<HHMMSS>.json   — interactive view tree
"""

import argparse
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml


def _configure_logging(log_dir: str = "logs", level: str = "INFO") -> None:
    """Configure rotating file handler + stream handler.

    Args:
        log_dir: Directory for log files.
        level: Log level string.
    """
    effective_level = os.environ.get("LOG_LEVEL", level).upper()
    numeric = getattr(logging, effective_level, logging.INFO)

    Path(log_dir).mkdir(parents=True, exist_ok=True)
    log_file = Path(log_dir) / f"pipeline_{datetime.today().strftime('%Y%m%d')}.log"

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)-35s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    fh = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=10 * 1024 * 1024, backupCount=7, encoding="utf-8"
    )
    fh.setFormatter(fmt)
    sh = logging.StreamHandler(sys.stdout)
    sh.setFormatter(fmt)

    root = logging.getLogger()
    root.setLevel(numeric)
    root.addHandler(fh)
    root.addHandler(sh)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("markdown_it").setLevel(logging.WARNING)


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cab-report",
        description="CAB Report Renderer — interactive view tree + HTML + PDF exports.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --input report.md --all
  python main.py --input report.md --html --side-data board.yaml
  cat report.md | python main.py --input - --tree
        """,
    )
    parser.add_argument("--input", required=True,
                        help="Report text file, or '-' to read stdin")
    parser.add_argument("--side-data",
                        help="YAML/JSON file with boardMembers, personas and icpProfile")
    parser.add_argument("--streaming", action="store_true",
                        help="Treat the input as still streaming (no settle, preview only)")
    parser.add_argument("--config", default=None,
                        help="Path to config.yaml (default: built-in settings, or ./config.yaml if present)")
    parser.add_argument("--output-dir", default=None,
                        help="Override paths.output_dir from config")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    stages = parser.add_argument_group("Output Stages")
    stages.add_argument("--tree", action="store_true",
                        help="Write the interactive view tree as JSON")
    stages.add_argument("--html", action="store_true",
                        help="Write the self-contained HTML export")
    stages.add_argument("--pdf", action="store_true",
                        help="Write the PDF export")
    stages.add_argument("--all", action="store_true",
                        help="Run all stages: tree -> html -> pdf")
    return parser.parse_args(argv)


def _resolve_config(path: str = None) -> str:
    if path:
        return path
    return "config.yaml" if Path("config.yaml").exists() else None


def _read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _read_side_data(path: str = None) -> dict[str, Any]:
    """Load side data; keys accept the camelCase names of the generation service."""
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"side data in {path} must be a mapping")
    return {
        "board_members": data.get("boardMembers", data.get("board_members")),
        "personas": data.get("personas", data.get("personaBreakdowns")),
        "icp_profile": data.get("icpProfile", data.get("icp_profile")),
    }


def run_pipeline(args: argparse.Namespace, logger: logging.Logger) -> int:
    """Execute the requested output stages.

    Args:
        args: Parsed CLI arguments.
        logger: Configured logger.

    Returns:
        0 on success, 1 on error.
    """
    from cab_report.errors import ConfigError
    from cab_report.html_export import export_filename, export_html
    from cab_report.interactive import InteractiveRenderer
    from cab_report.pdf_export import export_pdf
    from cab_report.pipeline import ReportStream
    from cab_report.settings import load_settings
    from cab_report.telemetry import WebhookTelemetry

    do_all = args.all
    now = datetime.now()

    # -------------------------------------------------------------------------
    # Stage 1: Load input and configuration
    # -------------------------------------------------------------------------
    logger.info("=" * 65)
    logger.info("STAGE 1: Load Input")
    logger.info("=" * 65)
    try:
        settings = load_settings(_resolve_config(args.config))
        raw_text = _read_input(args.input)
        side = _read_side_data(args.side_data)
        logger.info("Input loaded -- %d chars from %s", len(raw_text), args.input)
    except FileNotFoundError as exc:
        logger.error("Input or config file missing: %s", exc)
        return 1
    except (ConfigError, ValueError, yaml.YAMLError, OSError) as exc:
        logger.error("Could not load input: %s", exc, exc_info=True)
        return 1

    output_dir = Path(args.output_dir or settings.paths.output_dir)
    telemetry = WebhookTelemetry(settings.telemetry)

    # -------------------------------------------------------------------------
    # Stage 2: Build document (settle)
    # -------------------------------------------------------------------------
    logger.info("=" * 65)
    logger.info("STAGE 2: Build Document")
    logger.info("=" * 65)
    stream = ReportStream(settings)
    stream.set_side_data(**side)
    document = stream.update(raw_text, is_streaming=args.streaming)
    if args.streaming:
        logger.info("Streaming flag set -- document not built, live preview only")
    elif document is not None:
        logger.info(
            "Document ready -- %d sections | %d board members | %d personas%s",
            len(document.sections), len(document.board_members), len(document.personas),
            " | TRUNCATED" if document.truncated else "",
        )

    # -------------------------------------------------------------------------
    # Stage 3: Interactive view tree
    # -------------------------------------------------------------------------
    if do_all or args.tree:
        logger.info("=" * 65)
        logger.info("STAGE 3: Interactive View Tree")
        logger.info("=" * 65)
        try:
            tree = InteractiveRenderer(settings, telemetry).render_stream(stream)
            output_dir.mkdir(parents=True, exist_ok=True)
            tree_path = output_dir / export_filename(settings.product.export_prefix, now, "json")
            tree_path.write_text(json.dumps(tree.to_dict(), indent=2), encoding="utf-8")
            logger.info("View tree written: %s (%d fallbacks)",
                        tree_path, len(tree.find_all("section_fallback")))
        except OSError as exc:
            logger.error("View tree export failed: %s", exc, exc_info=True)
            return 1

    # -------------------------------------------------------------------------
    # Stage 4: HTML export
    # -------------------------------------------------------------------------
    if do_all or args.html:
        logger.info("=" * 65)
        logger.info("STAGE 4: HTML Export")
        logger.info("=" * 65)
        try:
            html_path = export_html(document, str(output_dir), settings, telemetry, now)
            logger.info("HTML export generated: %s", html_path)
        except OSError as exc:
            logger.error("HTML export failed: %s", exc, exc_info=True)
            return 1

    # -------------------------------------------------------------------------
    # Stage 5: PDF export
    # -------------------------------------------------------------------------
    if do_all or args.pdf:
        logger.info("=" * 65)
        logger.info("STAGE 5: PDF Export")
        logger.info("=" * 65)
        try:
            pdf_path = export_pdf(document, str(output_dir), settings, telemetry, now)
            logger.info("PDF export generated: %s", pdf_path)
        except Exception as exc:
            logger.error("PDF export failed: %s", exc, exc_info=True)
            return 1

    logger.info("=" * 65)
    logger.info("PIPELINE COMPLETE")
    logger.info("=" * 65)
    return 0


def main(argv=None) -> None:
    """Parse args, configure logging, and run pipeline."""
    args = _parse_args(argv)

    log_dir = "logs"
    config_path = _resolve_config(args.config)
    if config_path and Path(config_path).exists():
        with open(config_path, "r") as fh:
            try:
                cfg = yaml.safe_load(fh) or {}
            except yaml.YAMLError:
                cfg = {}
        if isinstance(cfg, dict):
            log_dir = (cfg.get("paths") or {}).get("log_dir", "logs")

    _configure_logging(log_dir=log_dir, level=args.log_level)
    logger = logging.getLogger(__name__)

    no_stage = not any([args.all, args.tree, args.html, args.pdf])
    if no_stage:
        logger.warning("No output stage selected; use --tree, --html, --pdf or --all")
        sys.exit(0)

    logger.info(
        "CAB Report Renderer v1.0 | %s",
        datetime.today().strftime("%Y-%m-%d %H:%M:%S"),
    )
    sys.exit(run_pipeline(args, logger))


if __name__ == "__main__":
    main()
