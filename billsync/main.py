import logging
import os

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI

from . import app_context
from .app.routes.billing import router as billing_router
from .config import load_database_config

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

DB_CFG = load_database_config().as_connect_kwargs()


def get_conn():
    return psycopg2.connect(**DB_CFG)


app_context.configure(get_conn=get_conn)

app = FastAPI(title="Billing Webhooks API")
app.include_router(billing_router)


@app.get("/healthz")
def healthz():
    return {"ok": True}


# run: uvicorn billsync.main:app --host 127.0.0.1 --port 8000 --reload
