from __future__ import annotations

from collections.abc import Callable

from .json_fmt import format_json
from .markdown_fmt import format_markdown
from ..views import View


def get_formatter(fmt: str) -> Callable[[View], str]:
    if fmt == "json":
        return format_json
    if fmt == "markdown":
        return format_markdown
    raise ValueError(f"Unknown format: {fmt!r}")
