"""
dualcast - dual-stream (screen + camera) chunked recorder with live S3 upload

Usage:
    python main.py --config config/settings.yaml
    python main.py -c config/settings.yaml --user-id u1 --recording-id r1
"""

import argparse
import logging
import os
import signal
import sys
import threading
import time
from datetime import datetime
from pathlib import Path

from dualcast.config import load_config, options_from_config
from dualcast.errors import RecorderError
from dualcast.session import RecordingSession, SessionPhase
from dualcast.upload import S3Uploader


def setup_logging(log_dir: Path, verbose: bool = False) -> None:
    """Configure logging to console and file."""
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / f"dualcast_{datetime.now().strftime('%Y%m%d')}.log"

    # Format
    fmt = "%(asctime)s | %(levelname)-8s | %(message)s"
    datefmt = "%H:%M:%S"

    # Root logger
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=fmt,
        datefmt=datefmt,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )

    # Reduce noise from libraries
    for name in ("boto3", "botocore", "s3transfer", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)


logger = logging.getLogger("dualcast")


def log_summary(results: dict) -> None:
    for kind, outcomes in results.items():
        uploaded = [o for o in outcomes if o.ok]
        logger.info(f"{kind.label}: {len(uploaded)}/{len(outcomes)} chunk(s) uploaded by drain")
        for outcome in outcomes:
            if not outcome.ok:
                logger.warning(f"  {outcome.path.name}: {outcome.status.value} "
                               f"after {outcome.attempts} attempt(s)")


def main():
    parser = argparse.ArgumentParser(
        description="dualcast - record screen and camera, upload chunks live",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --config config/settings.yaml
  python main.py -c config/settings.yaml --user-id u1 --recording-id r1
        """
    )
    parser.add_argument(
        "--config", "-c",
        required=True,
        help="Path to settings.yaml configuration file"
    )
    parser.add_argument("--user-id", dest="user_id")
    parser.add_argument("--recording-id", dest="recording_id")
    parser.add_argument("--screen-index", dest="screen_index")
    parser.add_argument("--video-index", dest="video_index")
    parser.add_argument("--bucket", dest="aws_bucket")
    parser.add_argument("--region", dest="aws_region")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Log encoder output")
    args = parser.parse_args()

    # Load config
    try:
        config = load_config(args.config)
        overrides = {k: getattr(args, k) for k in
                     ("user_id", "recording_id", "screen_index", "video_index",
                      "aws_bucket", "aws_region")}
        options = options_from_config(config, overrides)
    except RecorderError as e:
        print(f"ERROR: {e}")
        return 1

    # Setup logging
    setup_logging(Path(config["paths"]["logs_dir"]), args.verbose)

    # Banner
    logger.info("=" * 60)
    logger.info("  DUALCAST - Screen + Camera Chunked Recorder")
    logger.info("=" * 60)
    logger.info(f"User:          {options.user_id}")
    logger.info(f"Recording:     {options.recording_id}")
    logger.info(f"Destination:   s3://{options.aws_bucket} ({options.aws_region})")
    logger.info(f"Working dir:   {config['paths']['working_dir']}")
    logger.info(f"Chunk length:  {config['encoder']['segment_time']}s")

    session = RecordingSession(
        working_dir=Path(config["paths"]["working_dir"]),
        uploader=S3Uploader(config["upload"].get("key_prefix", "")),
        encoder=config["encoder"],
        timings=config["timings"],
    )

    start_error = []
    stop_requested = threading.Event()

    def run_recorder():
        try:
            session.start_recording(options)
        except RecorderError as e:
            logger.error(f"Failed to start recording: {e}")
            start_error.append(e)
        finally:
            stop_requested.set()

    # Track shutdown state
    shutdown_count = [0]

    def signal_handler(signum, frame):
        shutdown_count[0] += 1

        if shutdown_count[0] == 1:
            # First Ctrl+C: stop recording, drain uploads
            logger.info("Ctrl+C received - stopping recording")
            stop_requested.set()
        else:
            # Second Ctrl+C: Force stop everything immediately
            logger.info("Second Ctrl+C - forcing shutdown")
            os._exit(1)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    recorder_thread = threading.Thread(target=run_recorder, name="Recorder")
    recorder_thread.start()
    logger.info("Recording - Ctrl+C to stop")

    # Wake periodically so signals are handled promptly
    while not stop_requested.wait(timeout=0.5):
        pass

    if start_error:
        recorder_thread.join()
        return 1

    # A stop requested during setup waits for the encoders to come up
    while session.phase is SessionPhase.STARTING:
        time.sleep(0.1)

    try:
        results = session.stop_recording()
    except RecorderError as e:
        logger.error(f"Stop failed: {e}")
        recorder_thread.join()
        return 1

    recorder_thread.join()
    log_summary(results)
    logger.info("Recording completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
