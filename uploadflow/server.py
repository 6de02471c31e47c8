# server.py
import logging
from typing import List, Optional, Union

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from uploadflow import __version__
from uploadflow.errors import CommitError
from uploadflow.models import OrderPhase, Submission, UploadedAsset
from uploadflow.notify import BrevoNotifier
from uploadflow.orders import UploadCommitHandler
from uploadflow.packages import list_packages
from uploadflow.records import AirtableRecordStore
from uploadflow.settings import settings
from uploadflow.storage import BlobStore

# --- Logging Configuration ---
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="[%(asctime)s] [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger(__name__)

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"} if "*" in settings.cors_origins else {}
PREFLIGHT_HEADERS = {
    **CORS_HEADERS,
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


class PreflightCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that answers accepted preflight requests with 204 No Content."""

    def preflight_response(self, request_headers):
        response = super().preflight_response(request_headers)
        if response.status_code != 200:
            return response
        headers = {
            key: value for key, value in response.headers.items()
            if key not in ("content-length", "content-type")
        }
        return Response(status_code=204, headers=headers)


# --- App Initialization ---
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Records customer image uploads for test and paid order packages.",
    version=__version__,
)

app.add_middleware(
    PreflightCORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

router = APIRouter(prefix=settings.API_PREFIX, tags=["Uploads"])


# ===================================================================
# Dependencies (request scoped, nothing cached between requests)
# ===================================================================

def get_record_store() -> AirtableRecordStore:
    return AirtableRecordStore()


def get_blob_store() -> BlobStore:
    return BlobStore()


def get_notifier() -> BrevoNotifier:
    return BrevoNotifier()


def get_commit_handler(
    records: AirtableRecordStore = Depends(get_record_store),
    blobs: BlobStore = Depends(get_blob_store),
    notifier: BrevoNotifier = Depends(get_notifier),
) -> UploadCommitHandler:
    return UploadCommitHandler(records=records, blobs=blobs, notifier=notifier)


# ===================================================================
# Error mapping
# ===================================================================

@app.exception_handler(CommitError)
async def commit_error_handler(request: Request, exc: CommitError):
    """Blocked duplicates (403), bad submissions (400), upstream record store errors, storage errors (500)."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_response(), headers=CORS_HEADERS)


# ===================================================================
# Endpoints
# ===================================================================

@router.options("/upload-images", include_in_schema=False)
async def upload_images_preflight():
    return Response(status_code=204, headers=PREFLIGHT_HEADERS)


@router.post("/upload-images")
async def upload_images(
    background_tasks: BackgroundTasks,
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    upload_column: Optional[str] = Form(None, alias="uploadColumn"),
    prompt: Optional[str] = Form(None),
    order_package: Optional[str] = Form(None, alias="orderPackage"),
    images: Optional[List[Union[UploadFile, str]]] = File(None),
    handler: UploadCommitHandler = Depends(get_commit_handler),
):
    """
    Stores the uploaded images and records the order in Airtable.

    A test upload is refused (403) while the customer still has a pending
    test package; a paid upload completes that pending record in place.
    """
    log.info("Received upload request")
    try:
        assets = []
        for upload in images or []:
            # Text parts under the images key are not files
            if isinstance(upload, str):
                continue
            content = await upload.read()
            # Browsers send an empty part when no file was picked
            if not upload.filename and not content:
                continue
            assets.append(UploadedAsset(
                filename=upload.filename or "upload",
                content=content,
                content_type=upload.content_type,
            ))

        submission = Submission(
            email=email,
            name=name,
            note=prompt,
            package=order_package,
            phase=OrderPhase.from_column(upload_column),
            assets=assets,
        )
        result = await handler.commit(submission, background_tasks=background_tasks)
    except CommitError:
        raise
    except Exception as e:
        log.exception(f"Upload failed: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)}, headers=CORS_HEADERS)

    content = result.record.raw or result.record.model_dump(by_alias=True)
    return JSONResponse(content=content, headers=CORS_HEADERS)


@router.get("/packages")
async def get_packages():
    """Lists the order packages and how many images each accepts."""
    return [package.model_dump(mode="json") for package in list_packages()]


app.include_router(router)


@app.get("/health")
async def health():
    return {"status": "ok"}
