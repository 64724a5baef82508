"""Application modules.

- video: Source upload intake
- transcoding: Preset catalog, filter-graph builder, ffmpeg encoder, version worker
- job: In-memory job registry, coordinator, downloads and retention
- integration: Mixpost media publishing
"""
