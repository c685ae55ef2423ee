import io
import logging

from fastapi import APIRouter, Form, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from attendance_engine.core.exceptions import BatchStructureError
from attendance_engine.schemas.attendance import ImportResultResponse, RawPunchRecord
from attendance_engine.schemas.payroll import BatchResult, PayrollBatch
from attendance_engine.schemas.settings import IdentifierDirectory
from attendance_engine.services.normalizer import load_zone, normalize
from attendance_engine.services.pipeline import process_batch
from attendance_engine.services.punch_reader import file_extension, read_punch_file

logger = logging.getLogger(__name__)

router = APIRouter()

_ALLOWED_EXTENSIONS = {".txt", ".tsv", ".csv", ".xlsx", ".xls"}


def _bad_request(exc: BatchStructureError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _parse_form_model(model: type, raw: str, field_name: str):
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("Invalid '%s' form field: %d error(s)", field_name, exc.error_count())
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc


async def _read_upload(file: UploadFile) -> list[RawPunchRecord]:
    ext = file_extension(file.filename)
    logger.info("Upload: '%s' (extension: '%s')", file.filename, ext)

    if ext not in _ALLOWED_EXTENSIONS:
        logger.warning("Rejected file '%s': extension '%s' not allowed", file.filename, ext)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type '{ext}'. Allowed: {', '.join(sorted(_ALLOWED_EXTENSIONS))}",
        )

    content = await file.read()
    try:
        return await run_in_threadpool(read_punch_file, io.BytesIO(content), file.filename or "")
    except BatchStructureError as exc:
        logger.warning("Unreadable file '%s': %s", file.filename, exc)
        raise _bad_request(exc) from exc


async def _run(batch: PayrollBatch) -> BatchResult:
    try:
        return await run_in_threadpool(process_batch, batch)
    except BatchStructureError as exc:
        logger.warning("Batch rejected (branch=%s): %s", batch.branch_id, exc)
        raise _bad_request(exc) from exc


@router.post(
    "/process",
    response_model=BatchResult,
    summary="Compute payroll for a JSON batch",
)
async def process(batch: PayrollBatch) -> BatchResult:
    return await _run(batch)


@router.post(
    "/upload",
    response_model=BatchResult,
    summary="Compute payroll for an uploaded attendance file",
)
async def upload(
    file: UploadFile,
    batch: str = Form(..., description="PayrollBatch JSON; records are taken from the file"),
) -> BatchResult:
    payroll_batch = _parse_form_model(PayrollBatch, batch, "batch")
    records = await _read_upload(file)
    logger.info("Read '%s': %d records", file.filename, len(records))
    return await _run(payroll_batch.model_copy(update={"records": records, "file_content": None}))


@router.post(
    "/parse",
    response_model=ImportResultResponse,
    summary="Preview how an attendance file normalizes",
)
async def parse(
    file: UploadFile,
    directory: str = Form(..., description="IdentifierDirectory JSON"),
    timezone: str | None = Form(default=None),
) -> ImportResultResponse:
    identifier_directory = _parse_form_model(IdentifierDirectory, directory, "directory")
    records = await _read_upload(file)
    try:
        tz = load_zone(timezone)
    except BatchStructureError as exc:
        raise _bad_request(exc) from exc

    events, errors = await run_in_threadpool(normalize, records, identifier_directory, tz=tz)

    total = len(records)
    if not events and total > 0:
        import_status = "failed"
    elif errors:
        import_status = "partial"
    else:
        import_status = "success"

    logger.info(
        "Parse finished [%s]: status=%s, total=%d, events=%d, errors=%d",
        file.filename, import_status, total, len(events), len(errors),
    )

    return ImportResultResponse(
        filename=file.filename or "unknown",
        total=total,
        events=len(events),
        error_count=len(errors),
        errors=errors,
        status=import_status,
    )
