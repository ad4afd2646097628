"""Multi-frame generation pipeline."""

import logging
import time
from collections.abc import Callable
from typing import Optional

import httpx

from .config import PipelineSettings
from .errors import FlipbookError, InvalidInputError
from .frame_generator import FrameGenerator
from .images import encode_frame
from .models import FrameJob, GenerationResult, build_frame_prompt

logger = logging.getLogger(__name__)


class FramePipeline:
    """Generates an ordered image sequence for one prompt.

    Frames are requested strictly one after another, never in parallel, with
    a pause between successful frames to stay under the upstream rate limits.
    The first frame that fails aborts the whole sequence; partial results are
    never returned.
    """

    def __init__(
        self,
        settings: PipelineSettings,
        client: httpx.Client,
        *,
        sleep: Callable[[float], None] = time.sleep,
        generator: Optional[FrameGenerator] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            settings: Validated pipeline settings (see PipelineSettings.from_config)
            client: HTTP client for upstream calls
            sleep: Delay function used between frames and between retries
            generator: Pre-built frame generator (defaults to one sharing
                ``client`` and ``sleep``)
        """
        self.settings = settings
        self._sleep = sleep
        self._generator = generator or FrameGenerator(settings, client, sleep=sleep)

    def generate(self, text: str) -> GenerationResult:
        """
        Generate every frame for a prompt.

        Args:
            text: The user's prompt

        Returns:
            GenerationResult with exactly ``frame_count`` base64 frames in order

        Raises:
            InvalidInputError: If the prompt is empty
            FlipbookError: The first frame failure, with ``frame_index`` set
        """
        text = (text or "").strip()
        if not text:
            raise InvalidInputError("Text is required")

        frame_count = self.settings.frame_count
        result = GenerationResult()
        started = time.monotonic()

        logger.info(f"Starting generation of {frame_count} frames for prompt: {text}")

        for index in range(frame_count):
            job = FrameJob(prompt=build_frame_prompt(text, index, frame_count), index=index)
            logger.info(f"Generating frame {index + 1}/{frame_count}")

            try:
                image_bytes = self._generator.generate(job)
                result.frames.append(encode_frame(image_bytes))
            except FlipbookError as e:
                e.frame_index = index
                logger.error(f"Frame {index + 1}/{frame_count} failed: {e.message}")
                raise

            if index < frame_count - 1 and self.settings.frame_delay_seconds > 0:
                self._sleep(self.settings.frame_delay_seconds)

        logger.info(
            f"All {frame_count} frames generated in {time.monotonic() - started:.1f}s"
        )
        return result
