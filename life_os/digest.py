"""Human-readable Markdown digest of recent insights, grouped by life area."""

import logging
from datetime import datetime
from pathlib import Path

from .models import LIFE_AREAS
from .state_store import write_text_atomic

logger = logging.getLogger(__name__)

DIGEST_WINDOW = 50
PER_AREA = 10


def render_insights_digest(insights: list[dict], area_scores: dict, now: datetime) -> str:
    recent = insights[:DIGEST_WINDOW]
    lines = [
        "# Life Insights",
        "",
        f"**Last Updated:** {now.strftime('%Y-%m-%d %H:%M %Z').strip()}",
        f"**Total Insights:** {len(insights)}",
        "",
    ]

    for area in LIFE_AREAS:
        score = area_scores.get(area.id.value)
        heading = f"## {area.name}"
        if score is not None:
            heading += f" ({score}/100)"
        lines.append(heading)
        lines.append("")

        items = [i for i in recent if i.get("area") == area.id.value][:PER_AREA]
        if not items:
            lines.append("_No insights._")
        for item in items:
            lines.append(f"- **[{item.get('type', '').upper()} p{item.get('priority')}]** {item.get('title')}")
            if item.get("content"):
                lines.append(f"  {item['content']}")
            for rec in item.get("recommendations") or []:
                lines.append(f"  - {rec}")
        lines.append("")

    return "\n".join(lines)


def write_insights_digest(path: Path, insights: list[dict], area_scores: dict, now: datetime) -> None:
    write_text_atomic(Path(path), render_insights_digest(insights, area_scores, now))
    logger.debug(f"Insights digest written to {path}")
