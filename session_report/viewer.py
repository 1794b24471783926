import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from jinja2 import Environment, PackageLoader

from .api import api_router
from .export.csv_export import report_columns

logger = logging.getLogger(__name__)

_jinja_env = Environment(
    loader=PackageLoader("session_report", "templates"),
    autoescape=True,
)

PAGE_ROWS = 200


def get_template(name):
    """Get a Jinja2 template by name."""
    return _jinja_env.get_template(name)


def _render_table(report, search: str | None, offset: int) -> str:
    columns = report_columns(report.records, report.full_detail)
    records = report.records
    if search:
        needle = search.lower()
        records = [r for r in records if any(needle in str(v).lower() for v in r.to_row().values())]
    page = records[offset : offset + PAGE_ROWS]

    return get_template("report.html").render(
        total=len(records),
        window=report.window.describe(),
        category=report.criteria.category,
        search=search,
        columns=columns,
        rows=[record.to_row(report.full_detail) for record in page],
        previous_offset=max(offset - PAGE_ROWS, 0) if offset > 0 else None,
        next_offset=offset + PAGE_ROWS if offset + PAGE_ROWS < len(records) else None,
    )


def create_app(report) -> FastAPI:
    app = FastAPI(
        title="Session Report Viewer",
        version="0.1.0",
        description="Interactive view of a session history report",
    )
    app.state.report = report

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request, search: str | None = None, offset: int = 0):
        return _render_table(request.app.state.report, search, max(offset, 0))

    app.include_router(api_router)
    return app


async def serve(report, settings):
    """Serve the viewer until interrupted."""
    app = create_app(report)
    config = uvicorn.Config(app, host=settings.viewer_host, port=settings.viewer_port, log_level="info")
    logger.info("Viewer available at http://%s:%d/", settings.viewer_host, settings.viewer_port)
    await uvicorn.Server(config).serve()
