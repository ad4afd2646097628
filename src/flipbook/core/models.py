"""Data models for a single frame generation request."""

from dataclasses import dataclass, field


def build_frame_prompt(text: str, index: int, frame_count: int) -> str:
    """Append the positional suffix for one frame to the user's prompt.

    Args:
        text: The user's prompt.
        index: Zero-based frame index.
        frame_count: Total number of frames in the sequence.

    Returns:
        Prompt of the form ``"<text>, frame <index + 1> of <frame_count>"``.
    """
    return f"{text}, frame {index + 1} of {frame_count}"


@dataclass
class FrameJob:
    """One frame's upstream request state.

    ``attempt`` is the one-based number of the upstream call currently being
    made for this frame.  The frame generator bumps it by exactly one before
    every retry.
    """

    prompt: str
    index: int = 0
    attempt: int = 1


@dataclass
class GenerationResult:
    """Ordered base64-encoded frames for one request."""

    frames: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.frames)
