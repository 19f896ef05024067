"""Pure email body rendering.

Templates are plain text with ``{{fieldName}}`` markers. Jinja2 reads that
syntax natively; markers without a value render as an empty string.
"""

from datetime import date
from typing import Any, Mapping

from jinja2 import Environment, Undefined

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

_environment = Environment(
    autoescape=False,
    keep_trailing_newline=True,
    undefined=Undefined,
)


def render_template(template_text: str, fields: Mapping[str, Any]) -> str:
    return _environment.from_string(template_text).render(**fields)


def format_performance_datetime(schedule_date: str, schedule_time: str) -> str:
    """``2025-03-08`` + ``19:00`` -> ``2025/03/08 (Sat) 19:00``."""
    weekday = _WEEKDAYS[date.fromisoformat(schedule_date).weekday()]
    return f"{schedule_date.replace('-', '/')} ({weekday}) {schedule_time}"
