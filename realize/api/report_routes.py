"""Realize Reporter — Report API Routes."""

from fastapi import APIRouter, Depends

from realize.analyzer.pipeline import ExportOutput, ReportOutput, ReportPipeline, ReportRequest
from realize.api.errors import http_error
from realize.core.errors import RealizeError
from realize.core.logging import get_logger
from realize.dependencies import get_pipeline

logger = get_logger("api.reports")

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.post("", response_model=ReportOutput)
async def run_report(
    request: ReportRequest, pipeline: ReportPipeline = Depends(get_pipeline)
):
    """Fetch a report and render it as Markdown.

    Inputs are validated before anything is fetched. For ``site_breakdown``,
    ``page`` selects which page of the top sites to render.
    """
    try:
        return await pipeline.run_report(request)
    except RealizeError as e:
        raise http_error(e, "Report")


@router.post("/export", response_model=ExportOutput)
async def export_report(
    request: ReportRequest, pipeline: ReportPipeline = Depends(get_pipeline)
):
    """Export the requested breakdown to an XLSX file in the download directory."""
    try:
        return await pipeline.export_report(request)
    except RealizeError as e:
        raise http_error(e, "Export")
    except OSError as e:
        logger.error(f"Export write failed: {e}")
        raise http_error(RealizeError(str(e)), "Export")


@router.post("/export-all", response_model=ExportOutput)
async def export_all_breakdowns(
    request: ReportRequest, pipeline: ReportPipeline = Depends(get_pipeline)
):
    """Export day, campaign, ad, country and platform breakdowns to one workbook."""
    try:
        return await pipeline.export_multi_breakdown(request)
    except RealizeError as e:
        raise http_error(e, "Export")
    except OSError as e:
        logger.error(f"Export write failed: {e}")
        raise http_error(RealizeError(str(e)), "Export")
