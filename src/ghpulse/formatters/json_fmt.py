from __future__ import annotations

import dataclasses
import json

from ..views import View


def format_json(view: View) -> str:
    return json.dumps(dataclasses.asdict(view), indent=2, default=str)
