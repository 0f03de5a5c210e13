"""
sightline CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, wire the
    camera source, detection pipeline, overlay preview and speech output
    together, and run the main processing loop.

Usage:
    python main.py --source 0                         # Webcam
    python main.py --source clip.mp4 --no-speech
    python main.py --policy cooldown --threshold 0.6
    python main.py --config config.yaml

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import dataclasses
import logging
import sys
import time

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

from sightline.config import AppConfig, _validate, load_config
from sightline.coordinator import PipelineCoordinator
from sightline.inference import DnnInferenceAdapter
from sightline.input_handler import InputHandler
from sightline.labels import load_labels
from sightline.model_loader import load_model
from sightline.sinks import LatestDetectionsSink, SpeechSink
from sightline.visualizer import close_windows, show_frame


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="sightline: spoken object detection for low-vision users",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--source",
        type=str,
        help="Input source: '0' for webcam, path to image/video file, or directory.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        help="Detection score threshold (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--backend",
        type=str,
        choices=["cpu", "cuda"],
        help="Compute backend preference. Overrides config.",
    )
    parser.add_argument(
        "--policy",
        type=str,
        choices=["set_difference", "cooldown"],
        help="Announcement debounce policy. Overrides config.",
    )
    parser.add_argument(
        "--no-speech",
        action="store_true",
        help="Disable spoken announcements.",
    )
    parser.add_argument(
        "--no-display",
        action="store_true",
        help="Run headless without the preview window.",
    )

    return parser.parse_args()


def apply_cli_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Return a copy of config with CLI arguments applied and re-validated."""
    if args.source is not None:
        config = dataclasses.replace(
            config, input=dataclasses.replace(config.input, source=args.source))
    if args.threshold is not None:
        config = dataclasses.replace(
            config, detection=dataclasses.replace(
                config.detection, score_threshold=args.threshold))
    if args.backend is not None:
        config = dataclasses.replace(
            config, model=dataclasses.replace(config.model, backend=args.backend))
    if args.policy is not None:
        config = dataclasses.replace(
            config, announcement=dataclasses.replace(
                config.announcement, policy=args.policy))
    if args.no_speech:
        config = dataclasses.replace(
            config, speech=dataclasses.replace(config.speech, enabled=False))
    if args.no_display:
        config = dataclasses.replace(
            config, display=dataclasses.replace(config.display, enabled=False))

    _validate(config)
    return config


def process_with_preview(coordinator, frame, keep_preview: bool):
    """Run one frame through the pipeline, keeping a copy for display.

    The coordinator releases the frame, after which its buffer may be
    reused by the source, so the preview is copied beforehand.

    Returns:
        (spoken, preview): preview is None when keep_preview is False.
    """
    preview = frame.data.copy() if keep_preview else None
    _, spoken = coordinator.process_frame(frame)
    return spoken, preview


def main() -> int:
    """Main execution loop."""
    args = parse_args()

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = apply_cli_overrides(load_config(args.config), args)
        logger.info("Configuration active for this run.")
    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    # 2. Initialize Components
    speech_sink = None
    try:
        labels = load_labels(config.labels.path)
        net = load_model(config.model)
        inference = DnnInferenceAdapter(
            net,
            capacity=config.model.capacity,
            class_offset=config.model.class_offset,
        )
        input_handler = InputHandler(
            source=config.input.source,
            resize_width=config.input.resize_width,
        )

        if config.speech.enabled:
            speech_sink = SpeechSink(
                rate=config.speech.rate,
                prefix=config.announcement.prefix,
            )
            speech_sink.start()

        overlay_sink = LatestDetectionsSink()
        coordinator = PipelineCoordinator(
            labels,
            inference,
            config,
            overlay_sink=overlay_sink,
            speech_sink=speech_sink,
        )

    except (FileNotFoundError, ValueError, RuntimeError) as e:
        logger.error("Initialization failed: %s", e)
        return 1
    except Exception as e:
        logger.exception("Unexpected initialization error: %s", e)
        return 1

    # 3. Processing Loop
    logger.info("Starting processing loop. Press 'q' or ESC to quit in display mode.")

    frame_count = 0
    start_time = time.perf_counter()

    try:
        for frame_id, frame in input_handler:
            frame_count += 1
            spoken, preview = process_with_preview(
                coordinator, frame, config.display.enabled)

            if spoken:
                logger.info("Frame %d: announcing %s", frame_id, ", ".join(sorted(spoken)))

            if frame_count % 30 == 0:
                logger.info("Processed %d frames...", frame_count)

            if config.display.enabled:
                key = show_frame(preview, overlay_sink.latest(), config.visualization)
                if key == ord("q") or key == 27:  # 'q' or ESC
                    logger.info("Stopping loop per user request.")
                    break

    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
    except Exception as e:
        logger.exception("Runtime error during processing: %s", e)
        return 1
    finally:
        # 4. Cleanup
        elapsed = time.perf_counter() - start_time
        fps = frame_count / elapsed if elapsed > 0 else 0.0

        input_handler.release()
        if speech_sink is not None:
            speech_sink.close()
        if config.display.enabled:
            close_windows()

        logger.info(
            "Processing finished. Total frames: %d. Avg FPS: %.2f.",
            frame_count, fps
        )

    return 0


if __name__ == "__main__":
    sys.exit(main())
