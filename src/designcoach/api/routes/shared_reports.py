"""Public shared-report routes. The share token is the only credential."""

from fastapi import APIRouter
from fastapi.responses import Response

from designcoach.dependencies import SharedReports

router = APIRouter(prefix="/shared/reports", tags=["Shared Reports"])


@router.get("/{token}")
async def get_shared_report(token: str, gateway: SharedReports) -> dict:
    shared = await gateway.resolve(token)
    return shared.model_dump(mode="json")


@router.get("/{token}/pdf")
async def download_shared_report_pdf(token: str, gateway: SharedReports) -> Response:
    pdf, file_name = await gateway.render_pdf(token)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )
