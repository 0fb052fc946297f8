"""Pull-request review timelines, build status and repository metrics from GitHub."""

__version__ = "0.1.0"
