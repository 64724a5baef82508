"""Clip Variants backend.

Turns one uploaded video into several visually distinct, high-quality
versions encoded concurrently with ffmpeg.

Modules:
    - core: Configuration, logging, metrics and middleware
    - modules.video: Source upload intake
    - modules.transcoding: Presets, filter-graph builder, encoder and worker
    - modules.job: Job registry, coordinator, downloads and retention
    - modules.integration: Publishing versions to Mixpost
"""

__version__ = "0.1.0"
