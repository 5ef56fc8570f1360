"""
Command line entry point (``funlib-merge``).

Subcommands::

    funlib-merge merge ./scripts [--missing-stroke leave] [--dry-run]
    funlib-merge stats video.funscript
    funlib-merge smooth video.funscript -o video.smooth.funscript
"""

from __future__ import annotations

import argparse
import logging
import zipfile
from pathlib import Path
from typing import List, Sequence

from ..analysis.features import ChannelStats
from ..analysis.smoothing import device_smooth
from ..config.runtime import FunlibConfig, load_config
from ..core.models import Script
from ..dataio.file_paths import backup_archive_path, find_script_files
from ..dataio.formats import VERSIONS
from ..dataio.script_loader import load_script, load_scripts, save_script
from ..errors import FormatError, MergeError
from ..merge.multi_axis import MergeOptions, MissingPrimaryPolicy, merge_multi_axis

logger = logging.getLogger(__name__)


def _write_backup(folder: Path, files: Sequence[Path]) -> Path:
    archive = backup_archive_path(folder)
    with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in files:
            try:
                arcname = path.relative_to(folder.resolve())
            except ValueError:
                arcname = Path(path.name)
            zf.write(path, arcname.as_posix())
    return archive


def run_merge(
    folder: str | Path,
    config: FunlibConfig,
    *,
    dry_run: bool = False,
    version: str | None = None,
) -> List[Script]:
    """
    Merge every multi-axis file group below *folder* in place.

    Originals are archived to ``.processed-<timestamp>.zip`` first, then
    deleted and replaced by the merged scripts. Returns the merged scripts
    (empty when nothing needed merging).
    """
    folder = Path(folder)
    files = find_script_files(folder)
    if not files:
        logger.info("No .funscript files found in %s", folder)
        return []
    logger.info("Found %d funscript file(s)", len(files))

    scripts = load_scripts(files)
    options = MergeOptions(
        missing_primary=config.merge.missing_stroke,
        combine_single_secondary_channel=config.merge.combine_single_secondary_channel,
    )
    merged = merge_multi_axis(scripts, options)
    if {id(s) for s in merged} == {id(s) for s in scripts}:
        logger.info("No scripts to merge (all scripts are already standalone)")
        return []
    logger.info("Merged into %d script(s)", len(merged))

    prefix = "[DRY RUN] Would " if dry_run else ""
    archive = backup_archive_path(folder)
    if not dry_run:
        archive = _write_backup(folder, files)
        for path in files:
            path.unlink()
    logger.info("%s%s: %s", prefix, "create backup" if dry_run else "Backup created", archive)

    version = version or config.output.version
    for script in merged:
        if script.file is None:
            logger.warning("Script has no file path, skipping")
            continue
        target = Path(script.file.path)
        if not dry_run:
            save_script(script, target, version=version, line_length=config.output.line_length)
        logger.info("%s%s: %s", prefix, "write" if dry_run else "Written", target)
        if len(script.file.merged_files) > 1:
            logger.info("  (merged from: %s)", ", ".join(f.name for f in script.file.merged_files))
    return merged


def _format_stats(name: str, stats: ChannelStats) -> str:
    values = stats.to_mapping()
    return f"{name:<8} " + "  ".join(f"{key}={value}" for key, value in values.items())


def run_stats(path: str | Path) -> List[str]:
    script = load_script(path)
    return [_format_stats(channel.name, script.channel_stats(channel.name)) for channel in script.all_channels()]


def run_smooth(path: str | Path, output: str | Path | None, config: FunlibConfig) -> Path:
    """Device-smooth every channel of *path* and write the result."""
    script = load_script(path)
    smoothing = config.smoothing
    for channel in script.all_channels():
        smoothed = device_smooth(
            channel.actions,
            max_speed=smoothing.max_speed,
            min_interval=smoothing.min_interval_ms,
            straight_threshold=smoothing.straight_threshold,
        )
        logger.info("%s: %d -> %d actions", channel.name, len(channel.actions), len(smoothed))
        channel.actions = smoothed
        script.set_channel(channel)
    return save_script(
        script,
        output or path,
        version=config.output.version,
        line_length=config.output.line_length,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="funlib-merge", description="Merge, inspect and smooth funscript files.")
    parser.add_argument("--config", help="YAML config file (default: $FUNLIB_CONFIG).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    merge = sub.add_parser("merge", help="Merge multi-axis funscript files in a folder.")
    merge.add_argument("folder", help="Folder searched recursively for *.funscript files.")
    merge.add_argument(
        "--missing-stroke",
        choices=[policy.value for policy in MissingPrimaryPolicy],
        default=None,
        help="What to do when secondary axes have no stroke script (default: error).",
    )
    merge.add_argument("-n", "--dry-run", action="store_true", help="Show what would be done without changing files.")
    merge.add_argument("--version", dest="output_version", choices=VERSIONS, default=None, help="Output format version.")

    stats = sub.add_parser("stats", help="Print per-channel statistics.")
    stats.add_argument("file")

    smooth = sub.add_parser("smooth", help="Apply device smoothing to every channel.")
    smooth.add_argument("file")
    smooth.add_argument("-o", "--output", default=None, help="Output path (default: overwrite input).")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as exc:
        parser.error(f"Could not load config: {exc}")

    try:
        if args.command == "merge":
            folder = Path(args.folder).expanduser()
            if not folder.is_dir():
                parser.error(f"Folder not found: {folder}")
            if args.missing_stroke:
                config.merge.missing_stroke = args.missing_stroke
            run_merge(folder, config, dry_run=args.dry_run, version=args.output_version)
            if args.dry_run:
                logger.info("[DRY RUN] No changes were made")
        elif args.command == "stats":
            for line in run_stats(args.file):
                print(line)
        elif args.command == "smooth":
            target = run_smooth(args.file, args.output, config)
            print(f"[INFO] Wrote {target}")
    except MergeError as exc:
        logger.error("%s", exc)
        if "no base script" in str(exc):
            logger.error("Use --missing-stroke=empty-base or --missing-stroke=leave to handle secondary axes without a stroke")
        return 1
    except (FormatError, OSError) as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
