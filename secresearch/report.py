"""Markdown search reports using Jinja2 templates.

The default template lives at ``secresearch/templates/search_report.md.j2``.
"""

import datetime as dt
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .aggregator import SearchResponse

_TEMPLATES_DIR = Path(__file__).parent / "templates"


def _now_utc_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat()


def md_cell(value: object) -> str:
    """Make text safe for a single Markdown table cell."""
    return " ".join(str(value).split()).replace("|", "\\|")


def render_markdown_report(response: SearchResponse) -> str:
    """Render a search response as GitHub-flavoured Markdown.

    Args:
        response: Completed search.

    Returns:
        Markdown text.
    """
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(default_for_string=False, default=False),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["md_cell"] = md_cell
    template = env.get_template("search_report.md.j2")

    return template.render(
        generated_at=_now_utc_iso(),
        query=response.query,
        filter=response.filter,
        sort=response.sort,
        total=response.total,
        total_sources=response.total_sources,
        duration_ms=response.duration_ms,
        outcomes=response.outcomes,
        credentials=response.credentials_active,
        records=response.records,
    )


def write_markdown_report(path: Path, response: SearchResponse) -> None:
    """Write a search report, replacing ``path`` atomically.

    Args:
        path: Output path for the markdown report.
        response: Completed search.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    rendered = render_markdown_report(response)

    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        f.write(rendered)
    tmp.replace(path)
