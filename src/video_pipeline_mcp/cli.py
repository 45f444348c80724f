"""Batch-transcode every video in a directory to adaptive HLS.

Files are processed one at a time; each lands in ``<output>/<stem>/`` and,
when upload is enabled, under ``vid/<stem>/`` in the bucket.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from .config import get_config, update_config
from .orchestrator import PipelineOrchestrator
from .storage import create_uploader
from .transcoder import Transcoder

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = frozenset({".mp4", ".avi", ".mov", ".mkv", ".webm", ".flv", ".wmv"})


def find_videos(input_dir: Path) -> list[Path]:
    """Video files directly inside *input_dir*, sorted by name."""
    return sorted(
        p for p in input_dir.iterdir()
        if p.is_file() and p.suffix.lower() in VIDEO_EXTENSIONS
    )


async def transcode_directory(input_dir: Path, output_dir: Path, *, upload: bool) -> int:
    """Transcode every video in *input_dir*. Returns the number of failures."""
    cfg = get_config()
    uploader = create_uploader(cfg) if upload else None
    orchestrator = PipelineOrchestrator(
        providers={},
        transcoder=Transcoder(max_concurrent=cfg.max_concurrent_encodes, adaptive=cfg.adaptive),
        uploader=uploader,
        cfg=cfg,
    )
    await orchestrator.start()

    videos = find_videos(input_dir)
    if not videos:
        logger.info("No video files found in %s", input_dir)
        return 0
    logger.info("Found %d video file(s): %s", len(videos), ", ".join(v.name for v in videos))

    failures = 0
    for video in videos:
        logger.info("Processing %s", video.name)
        try:
            report = await orchestrator.transcode_local(video, output_root=output_dir)
        except Exception as exc:
            failures += 1
            logger.error("Failed to process %s: %s", video.name, exc)
            continue
        logger.info(
            "Processed %s: %s",
            video.name,
            report.get("playlist_url") or report["transcode"]["master_playlist_path"],
        )
    return failures


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("input_dir", type=Path, help="Directory containing source videos.")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output root (default: PIPELINE_OUTPUT_DIR or the user cache).",
    )
    parser.add_argument(
        "--upload",
        action="store_true",
        help="Upload results to the configured bucket (requires GCS_BUCKET_NAME).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.input_dir.is_dir():
        parser.error(f"not a directory: {args.input_dir}")
    cfg = get_config()
    if args.upload:
        if not cfg.gcs_bucket_name:
            parser.error("--upload needs GCS_BUCKET_NAME to be set")
        cfg = update_config(upload_enabled=True)
    output_dir = args.output or cfg.resolved_output_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    failures = asyncio.run(
        transcode_directory(args.input_dir, output_dir, upload=args.upload or cfg.upload_enabled)
    )
    if failures:
        logger.error("%d file(s) failed", failures)
        return 1
    logger.info("All videos processed")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
