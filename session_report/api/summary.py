from fastapi import APIRouter, Request

from ..dates import format_timestamp

router = APIRouter()


@router.get("/api/summary")
async def summary(request: Request):
    report = request.app.state.report
    if report is None:
        return {"status": "empty"}

    return {
        "status": "ok",
        "window": {
            "start": format_timestamp(report.window.start),
            "end": format_timestamp(report.window.end),
        },
        "criteria": report.criteria.model_dump(),
        "counters": report.counters.model_dump(),
        "subjects": [s.address for s in report.subjects],
        "warnings": report.warnings,
    }
