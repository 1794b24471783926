from fastapi import APIRouter, Request, HTTPException

router = APIRouter(prefix="/api/sessions")


def _get_report(request: Request):
    report = request.app.state.report
    if report is None:
        raise HTTPException(status_code=503, detail="Report not available")
    return report


@router.get("/")
async def list_sessions(
    request: Request,
    subject: str | None = None,
    search: str | None = None,
    offset: int = 0,
    limit: int = 100,
):
    report = _get_report(request)
    if offset < 0 or limit < 1:
        raise HTTPException(status_code=400, detail="offset must be >= 0 and limit >= 1")

    records = report.records
    if subject:
        records = [r for r in records if r.subject_uri.lower() == subject.lower()]
    if search:
        needle = search.lower()
        records = [
            r for r in records
            if needle in r.from_uri.lower() or needle in r.to_uri.lower()
            or needle in r.subject_display_name.lower()
        ]

    page = records[offset : offset + limit]
    return {
        "sessions": [r.to_row(report.full_detail) for r in page],
        "count": len(page),
        "total": len(records),
        "offset": offset,
    }


@router.get("/{session_id}")
async def get_session(request: Request, session_id: str):
    report = _get_report(request)
    for record in report.records:
        if record.session_id == session_id:
            return record.to_row(full_detail=True)
    raise HTTPException(status_code=404, detail="Session not found")
