"""Pydantic request and response models for the Flipbook API.

These models define the JSON schema for the conversion endpoint.  FastAPI
uses them for serialisation and OpenAPI documentation generation; request
validation is done by hand in the route so that content-type and empty-text
failures produce the exact status codes the frontend expects.

Models
------
ConvertRequest
    Payload for ``POST /api/convert`` — the user's prompt.
ConvertResponse
    Successful ``POST /api/convert`` result — the ordered frames.
ErrorResponse
    Body of every error response.
HealthResponse
    Body of ``GET /api/health``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ConvertRequest(BaseModel):
    """Request body for the ``POST /api/convert`` endpoint.

    Attributes:
        text: The prompt to animate.  Leading and trailing whitespace is
            stripped; an empty or missing value is rejected by the route.
    """

    model_config = {"str_strip_whitespace": True}

    text: str | None = Field(
        default=None,
        description="Prompt describing the animation (e.g. 'a cat playing piano').",
    )


class ConvertResponse(BaseModel):
    """Response body for a successful conversion.

    Attributes:
        output: Base64-encoded image payloads in frame order.
        type: Always ``"image-sequence"``.
    """

    output: list[str] = Field(
        ...,
        description="Base64-encoded frames, in playback order.",
    )
    type: Literal["image-sequence"] = Field(
        default="image-sequence",
        description="Kind of payload in ``output``.",
    )


class ErrorResponse(BaseModel):
    """Body of every error response.

    Attributes:
        error: Human-readable error message.
        details: Diagnostic detail (upstream body or traceback).  Omitted in
            production mode.
    """

    error: str = Field(..., description="Human-readable error message.")
    details: str | None = Field(
        default=None,
        description="Diagnostic detail, only present outside production mode.",
    )


class HealthResponse(BaseModel):
    """Response body for ``GET /api/health``."""

    status: Literal["ok"] = "ok"
    version: str
    configured: bool = Field(
        ...,
        description="Whether a well-formed inference credential is configured.",
    )
    frame_count: int
