"""
Command line entry point: score one local video and print progress events as JSON lines.
"""

import argparse
import asyncio
import json
import os
import shutil
import sys
import tempfile
from typing import List, Optional

from loguru import logger

from vidscore.config.settings import VidScoreConfig
from vidscore.exceptions import VidScoreException
from vidscore.utils.logging_config import log_manager
from vidscore.utils.validation import AnalyzeVideoRequest, validate_file_extension
from vidscore.video_pipeline.core.models import DEFAULT_METRICS, EventKind, ScoringMetric
from vidscore.video_pipeline.pipeline import AnalysisPipeline


def parse_metric(value: str) -> ScoringMetric:
    """Parse ``key:Name[:context]`` into a ScoringMetric."""
    parts = value.split(":", 2)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise argparse.ArgumentTypeError(f"Metric must look like key:Name[:context], got '{value}'")
    return ScoringMetric(key=parts[0], name=parts[1], context=parts[2] if len(parts) == 3 else "")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Score a short-form video before publishing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vidscore clip.mp4
  vidscore clip.mp4 --audience 'gym beginners' --platform Instagram
  vidscore clip.mp4 --metric hook:Hook:'First 3 seconds impact' --metric humor:Humor
        """
    )
    parser.add_argument('video', type=str, help='Path to the local video file')
    parser.add_argument('--audience', type=str, default=None, help='Target audience or niche')
    parser.add_argument('--niche', type=str, default=None, help='Explicit niche, skips classification')
    parser.add_argument('--platform', type=str, default=None, help='Target platform (default from PIPELINE_DEFAULT_PLATFORM)')
    parser.add_argument('--goal', type=str, default=None, help='What the scorer should judge the video for')
    parser.add_argument(
        '--metric',
        dest='metrics',
        type=parse_metric,
        action='append',
        default=None,
        help='Custom metric as key:Name[:context]; repeatable (default: potential, hook)'
    )
    parser.add_argument('--content-type', type=str, default=None, help='MIME type of the video')
    parser.add_argument('--sse', action='store_true', help='Print server-sent-event frames instead of JSON lines')
    return parser


async def run(args: argparse.Namespace) -> int:
    config = VidScoreConfig()
    log_manager.configure(config.logging)

    # The pipeline removes its asset when the run ends, so work on a copy
    workdir = tempfile.mkdtemp(prefix="vidscore-")
    asset_path = os.path.join(workdir, os.path.basename(args.video))
    shutil.copyfile(args.video, asset_path)

    request = AnalyzeVideoRequest(
        video_path=asset_path,
        content_type=args.content_type,
        filename=os.path.basename(args.video),
        audience=args.audience,
        niche=args.niche,
        platform=args.platform,
        goal=args.goal,
        metrics=args.metrics or list(DEFAULT_METRICS),
    )

    pipeline = None
    exit_code = 1
    try:
        pipeline = await AnalysisPipeline.create(config)
        async for event in pipeline.stream(request):
            if args.sse:
                sys.stdout.write(event.to_sse())
            else:
                print(json.dumps(event.to_dict()))
            sys.stdout.flush()
            if event.kind is EventKind.COMPLETE:
                exit_code = 0
    finally:
        if pipeline is not None:
            await pipeline.close()
        shutil.rmtree(workdir, ignore_errors=True)
    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if not os.path.isfile(args.video):
        print(f"Video file not found: {args.video}", file=sys.stderr)
        return 2
    try:
        validate_file_extension(os.path.basename(args.video))
    except VidScoreException as e:
        print(str(e), file=sys.stderr)
        return 2

    try:
        return asyncio.run(run(args))
    except VidScoreException as e:
        logger.error(f"vidscore failed: {e}")
        print(str(e), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
