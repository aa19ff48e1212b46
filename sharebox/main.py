import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sharebox.api.admin import router as admin_router
from sharebox.api.routes import router as files_router
from sharebox.auditor import start_ledger_auditor
from sharebox.config import CORS_ORIGINS, ENABLE_LEDGER_AUDIT
from sharebox.core.exceptions import register_exception_handlers
from sharebox.db import engine, ensure_connection, init_db
from sharebox.storage import UPLOAD_ROOT

app = FastAPI(title="Sharebox API", version="1.0.0")

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("sharebox")

origins = [origin.strip() for origin in CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

init_db()

app.include_router(files_router)
app.include_router(admin_router)
register_exception_handlers(app)


@app.get("/health")
def health():
    database = "ok" if ensure_connection() else "unreachable"
    storage = "ok" if UPLOAD_ROOT.is_dir() else "missing"
    healthy = database == "ok" and storage == "ok"
    return {"status": "ok" if healthy else "degraded", "database": database, "storage": storage}


if ENABLE_LEDGER_AUDIT:
    start_ledger_auditor(engine, logger)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("sharebox.main:app", host="0.0.0.0", port=8000)
