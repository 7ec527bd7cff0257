from fastapi import (
    FastAPI,
    UploadFile,
    File as UploadFileField,
    Body,
    HTTPException,
    Depends,
    Header,
    Request,
)
from fastapi.responses import FileResponse, JSONResponse, Response
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
)
from fastapi.middleware.cors import CORSMiddleware

import logging
import time
import uvicorn
import psutil

from fileshare import chats, queries, sharing, uploads, users
from fileshare.config import (
    API_KEY,
    CORS_ORIGINS,
    SERVER_NAME,
    STORAGE_DIRECTORY,
    configure_logging,
)
from fileshare.database import create_all, engine, get_session
from fileshare.errors import FileShareError, RecordNotFound, UserNotFound
from fileshare.schemas import ChatCreate, ShareRequest, UploadCreate, UserCreate
from fileshare.storage import BlobStore

logger = logging.getLogger(__name__)

blob_store = BlobStore(STORAGE_DIRECTORY)

# --- Prometheus metrics ---
REQUEST_COUNT = Counter(
    "fileshare_requests_total", "Total HTTP requests", ["method", "endpoint", "status"]
)

REQUEST_LATENCY = Histogram(
    "fileshare_request_latency_seconds",
    "Latency of requests (seconds)",
    ["endpoint"],
    buckets=(0.05, 0.1, 0.2, 0.5, 1, 2, 5),
)

CPU = Gauge("app_cpu_percent", "CPU percent")
MEM = Gauge("app_mem_bytes", "Resident memory bytes")

# --- FastAPI app ---
app = FastAPI(
    title="File Share",
    description="File uploads with per-user ownership, sharing and chat messages.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*", "X-Api-Key", "X-User-Id"],
)


@app.exception_handler(FileShareError)
async def fileshare_error_handler(request: Request, exc: FileShareError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# --- Root endpoint ---
@app.get("/")
async def root():
    return {"message": f"Hello from {SERVER_NAME}"}


# --- Health (lightweight) ---
@app.get("/healthz")
@app.head("/healthz")
async def health_check():
    return {"status": "ok", "app": SERVER_NAME}


# --- Readiness (deep check: DB + storage directory) ---
async def _check_db() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("Database readiness check failed")
        return False


def get_blob_store() -> BlobStore:
    return blob_store


@app.get("/readyz")
async def readiness_check(blobs: BlobStore = Depends(get_blob_store)):
    db_ok = await _check_db()
    storage_ok = blobs.root.is_dir()
    ok = db_ok and storage_ok
    return JSONResponse(
        status_code=200 if ok else 503,
        content={
            "status": "ok" if ok else "fail",
            "db": db_ok,
            "storage": storage_ok,
            "app": SERVER_NAME,
        },
    )


# --- Middleware: logging & metrics ---
@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = time.time() - start

    endpoint = request.url.path
    REQUEST_COUNT.labels(
        method=request.method, endpoint=endpoint, status=str(response.status_code)
    ).inc()
    REQUEST_LATENCY.labels(endpoint=endpoint).observe(duration)

    logger.info(
        "%s %s %s - %.4fs", request.method, endpoint, response.status_code, duration
    )
    return response


# --- API key / caller identity dependencies ---
async def verify_api_key(x_api_key: str = Header(...)):
    if x_api_key != API_KEY:
        raise HTTPException(status_code=401, detail="Unauthorized")


async def caller_id(x_user_id: int = Header(...)) -> int:
    """Caller id from `X-User-Id`, which must be set by a trusted upstream gateway."""
    return x_user_id


# --- Startup: create DB tables and ensure the storage directory exists ---
@app.on_event("startup")
async def startup_event():
    configure_logging()
    await create_all()
    blob_store.ensure_root()
    logger.info("Storage directory: %s", blob_store.root.resolve())


@app.on_event("shutdown")
async def shutdown_event():
    await engine.dispose()


# --- Prometheus metrics endpoint (update CPU/MEM on scrape) ---
@app.get("/metrics")
def metrics():
    CPU.set(psutil.cpu_percent())
    MEM.set(psutil.Process().memory_info().rss)
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


# --- Users ---
@app.post("/users", status_code=201, dependencies=[Depends(verify_api_key)])
async def register_user(body: UserCreate, session: AsyncSession = Depends(get_session)):
    async with session.begin():
        user = await users.register(session, body.full_name, body.email)
    return user.to_dict()


@app.get("/users", dependencies=[Depends(verify_api_key)])
async def list_users(session: AsyncSession = Depends(get_session)):
    async with session.begin():
        found = await users.list_all(session)
    return [u.to_dict() for u in found]


@app.get("/users/{user_id}", dependencies=[Depends(verify_api_key)])
async def get_user(user_id: int, session: AsyncSession = Depends(get_session)):
    async with session.begin():
        user = await users.get(session, user_id)
    return user.to_dict()


@app.put("/users/{user_id}", dependencies=[Depends(verify_api_key)])
async def update_user(
    user_id: int,
    patch: dict = Body(...),
    session: AsyncSession = Depends(get_session),
):
    async with session.begin():
        user = await users.update(session, user_id, patch)
    return user.to_dict()


@app.delete("/users/{user_id}", dependencies=[Depends(verify_api_key)])
async def delete_user(user_id: int, session: AsyncSession = Depends(get_session)):
    async with session.begin():
        count = await users.delete_user(session, user_id)
    return {"count": count}


# --- Upload metadata records ---
@app.post("/uploads", status_code=201, dependencies=[Depends(verify_api_key)])
async def create_upload(
    body: UploadCreate,
    user_id: int = Depends(caller_id),
    session: AsyncSession = Depends(get_session),
):
    async with session.begin():
        record = await uploads.create(
            session, user_id, body.file_id, body.label, file=body.file
        )
    return record.to_dict(include_id=True)


@app.get("/uploads", dependencies=[Depends(verify_api_key)])
async def list_uploads(
    user_id: int = Depends(caller_id),
    session: AsyncSession = Depends(get_session),
):
    async with session.begin():
        if not await users.exists(session, user_id):
            raise UserNotFound("User does not exist")
        records = await uploads.list_all(session)
    return [r.to_dict(include_id=True) for r in records]


@app.get("/uploads/shared", dependencies=[Depends(verify_api_key)])
async def list_shared_with_me(
    user_id: int = Depends(caller_id),
    session: AsyncSession = Depends(get_session),
):
    async with session.begin():
        records = await queries.list_shared_with_me(session, user_id)
    return [r.to_dict() for r in records]


@app.get("/uploads/accessible", dependencies=[Depends(verify_api_key)])
async def list_accessible(
    user_id: int = Depends(caller_id),
    session: AsyncSession = Depends(get_session),
):
    async with session.begin():
        records = await queries.list_accessible(session, user_id)
    return [r.to_dict() for r in records]


@app.get("/uploads/orphans", dependencies=[Depends(verify_api_key)])
async def list_orphans(
    user_id: int = Depends(caller_id),
    session: AsyncSession = Depends(get_session),
    blobs: BlobStore = Depends(get_blob_store),
):
    async with session.begin():
        records = await queries.find_orphans(session, blobs, owner_id=user_id)
    return [r.to_dict() for r in records]


@app.get("/uploads/shared/{file_id}", dependencies=[Depends(verify_api_key)])
async def get_shared_users(
    file_id: str,
    user_id: int = Depends(caller_id),
    session: AsyncSession = Depends(get_session),
):
    async with session.begin():
        entries = await queries.get_shared_users(session, user_id, file_id)
    if entries is None:
        return None
    return [e.to_dict() for e in entries]


@app.delete("/uploads/shared/{user_id}", dependencies=[Depends(verify_api_key)])
async def revoke_user_shares(user_id: int, session: AsyncSession = Depends(get_session)):
    async with session.begin():
        count = await sharing.revoke_everywhere(session, user_id)
    return {"count": count}


@app.get("/uploads/{user_id}", dependencies=[Depends(verify_api_key)])
async def list_uploads_by_owner(user_id: int, session: AsyncSession = Depends(get_session)):
    async with session.begin():
        records = await uploads.find_by_owner(session, user_id)
    return [r.to_dict() for r in records]


@app.put("/uploads/{file_id}", dependencies=[Depends(verify_api_key)])
async def update_label(
    file_id: str,
    patch: dict = Body(...),
    session: AsyncSession = Depends(get_session),
):
    async with session.begin():
        count = await uploads.update_label(session, file_id, patch)
    return {"count": count}


@app.get("/uploads/{file_id}/download", dependencies=[Depends(verify_api_key)])
async def download_upload(
    file_id: str,
    user_id: int = Depends(caller_id),
    session: AsyncSession = Depends(get_session),
    blobs: BlobStore = Depends(get_blob_store),
):
    async with session.begin():
        # owners and grantees only; anyone else sees the record as absent
        if not await queries.can_read(session, user_id, file_id):
            raise RecordNotFound(f"No file {file_id} readable by user {user_id}")
        record = await uploads.get_by_file_id(session, file_id)
    path = blobs.open_path(record.file)
    return FileResponse(path, filename=record.file, media_type="application/octet-stream")


@app.put("/uploads/{file_id}/share", dependencies=[Depends(verify_api_key)])
async def share_file(
    file_id: str,
    body: ShareRequest,
    user_id: int = Depends(caller_id),
    session: AsyncSession = Depends(get_session),
):
    async with session.begin():
        entry = await sharing.share_file(session, file_id, user_id, body.user_id)
    return entry.to_dict()


@app.delete(
    "/uploads/{file_id}/share/{target_id}", dependencies=[Depends(verify_api_key)]
)
async def unshare_file(
    file_id: str,
    target_id: int,
    user_id: int = Depends(caller_id),
    session: AsyncSession = Depends(get_session),
):
    async with session.begin():
        removed = await sharing.unshare_file(session, file_id, user_id, target_id)
    return {"count": int(removed)}


@app.delete("/uploads/user/{user_id}", dependencies=[Depends(verify_api_key)])
async def delete_all_for_user(
    user_id: int,
    session: AsyncSession = Depends(get_session),
    blobs: BlobStore = Depends(get_blob_store),
):
    async with session.begin():
        count = await uploads.delete_by_owner(session, user_id, blobs)
    return {"count": count}


@app.delete("/uploads/{file_id}", dependencies=[Depends(verify_api_key)])
async def delete_upload(
    file_id: str,
    session: AsyncSession = Depends(get_session),
    blobs: BlobStore = Depends(get_blob_store),
):
    async with session.begin():
        count = await uploads.delete_by_file_id(session, file_id, blobs)
    return {"count": count}


# --- Blobs ---
@app.post("/files", status_code=201, dependencies=[Depends(verify_api_key)])
async def upload_blob(
    file: UploadFile = UploadFileField(...),
    blobs: BlobStore = Depends(get_blob_store),
):
    stored = await blobs.save(file.file, file.filename, file.content_type)
    return {"files": [stored.to_dict()]}


@app.get("/files", dependencies=[Depends(verify_api_key)])
async def list_blobs(blobs: BlobStore = Depends(get_blob_store)):
    return blobs.list_names()


@app.get("/files/{filename}", dependencies=[Depends(verify_api_key)])
async def download_blob(filename: str, blobs: BlobStore = Depends(get_blob_store)):
    path = blobs.open_path(filename)
    return FileResponse(path, filename=filename, media_type="application/octet-stream")


# --- Chats ---
@app.post("/chats", status_code=201, dependencies=[Depends(verify_api_key)])
async def create_chat(
    body: ChatCreate,
    user_id: int = Depends(caller_id),
    session: AsyncSession = Depends(get_session),
):
    async with session.begin():
        chat = await chats.create(session, user_id, body.message, body.date)
    return chat.to_dict(include_id=True)


@app.get("/chats", dependencies=[Depends(verify_api_key)])
async def list_chats(session: AsyncSession = Depends(get_session)):
    async with session.begin():
        found = await chats.list_all(session)
    return [c.to_dict() for c in found]


@app.delete("/chats/{user_id}", dependencies=[Depends(verify_api_key)])
async def delete_chats(user_id: int, session: AsyncSession = Depends(get_session)):
    async with session.begin():
        count = await chats.delete_by_user(session, user_id)
    return {"count": count}


# --- Run (HTTP only; TLS is terminated upstream) ---
if __name__ == "__main__":
    uvicorn.run("fileshare.app_server:app", host="0.0.0.0", port=8000, log_level="info")
