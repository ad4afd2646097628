"""Core functionality for frame generation.

This module provides the core components of the Flipbook frame service:

- **FlipbookConfig**: Configuration management using Pydantic Settings
- **config**: Global configuration instance (loads from environment variables)
- **PipelineSettings**: Validated settings for one pipeline (checks the credential)
- **RetryPolicy**: Per-failure-kind retry budgets and waits
- **FrameGenerator**: One prompt in, one image out, with bounded retries
- **FramePipeline**: N sequential frames in, ordered base64 list out

Architecture Overview
---------------------
1. **Configuration Layer** (config.py, retry.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with FLIPBOOK_ in .env files
   - Explicit credential validation via PipelineSettings.from_config

2. **Upstream Layer** (frame_generator.py):
   - httpx calls to the hosted inference API
   - Response classification and retry loop with injected sleep

3. **Pipeline Layer** (pipeline.py, images.py, models.py):
   - Sequential frame loop with inter-frame delay
   - Pillow payload verification and base64 transcoding

4. **Errors** (errors.py):
   - FlipbookError hierarchy, each class mapped to an HTTP status

Usage Example
-------------
    import httpx

    from flipbook.core import FramePipeline, PipelineSettings, config

    with httpx.Client() as client:
        pipeline = FramePipeline(PipelineSettings.from_config(config), client)
        result = pipeline.generate("a cat playing piano")
        print(len(result.frames))
"""

from flipbook.core.config import FlipbookConfig, PipelineSettings, config
from flipbook.core.errors import ConfigError, FlipbookError
from flipbook.core.frame_generator import FrameGenerator
from flipbook.core.pipeline import FramePipeline
from flipbook.core.retry import RetryPolicy

__all__ = [
    "ConfigError",
    "FlipbookConfig",
    "FlipbookError",
    "FrameGenerator",
    "FramePipeline",
    "PipelineSettings",
    "RetryPolicy",
    "config",
]
