import logging
import os
import secrets
import sys
import time
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from tenacity import retry, stop_after_attempt, wait_fixed

import store
from cookies import (
    CLICKS_COOKIE,
    VISITOR_COOKIE,
    clicks_cookie_options,
    get_cookie_value,
    parse_click_count,
    visitor_cookie_options,
)
from models import Base, CounterRow

DATABASE_URL = os.getenv('DATABASE_URL')
if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is not set")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("clickcounter")

# SQLite connections get shared across FastAPI's worker threads
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# The database container can come up after the app, so creation is retried
@retry(stop=stop_after_attempt(5), wait=wait_fixed(2))
def create_tables_with_retry(engine):
    inspector = inspect(engine)
    if not inspector.has_table(CounterRow.__tablename__):
        logger.info("Creating tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Tables created.")
    else:
        logger.info("Tables already exist.")


try:
    create_tables_with_retry(engine)
except Exception:
    logger.exception("Failed to create tables")

app = FastAPI()

INSTALLED_TEMPLATES = Path("share", "click-counter", "templates")


def find_template_dir(module_dir=None, prefix=None) -> Path:
    """Templates beside the source in a checkout, else the installed data dir."""
    module_dir = Path(module_dir or Path(__file__).parent)
    local = module_dir / "templates"
    if local.is_dir():
        return local
    return Path(prefix or sys.prefix) / INSTALLED_TEMPLATES


templates = Jinja2Templates(directory=str(find_template_dir()))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def new_visitor_id() -> str:
    """Timestamp plus random bits; unique enough for counting, not a secret."""
    return f"{time.time_ns():x}{secrets.token_hex(8)}"


@app.exception_handler(SQLAlchemyError)
def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Storage error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.get("/")
def read_root(request: Request, db: Session = Depends(get_db)):
    cookie_header = request.headers.get("cookie")
    visitor_id = get_cookie_value(cookie_header, VISITOR_COOKIE)
    is_new_visitor = not visitor_id

    if is_new_visitor:
        visitor_id = new_visitor_id()
        store.record_visitor(db)
        logger.info("New visitor %s", visitor_id)

    counters = store.read_counters(db)
    user_clicks = get_cookie_value(cookie_header, CLICKS_COOKIE) or "0"

    response = templates.TemplateResponse(request, "index.html", {
        "total_visitors": counters["total_visitors"],
        "total_clicks": counters["total_clicks"],
        "user_clicks": user_clicks,
        "is_new_visitor": is_new_visitor,
    })
    response.headers["Cache-Control"] = "no-cache"

    if is_new_visitor:
        response.set_cookie(VISITOR_COOKIE, visitor_id, **visitor_cookie_options())
        response.set_cookie(CLICKS_COOKIE, "0", **clicks_cookie_options())
    return response


@app.get("/api/data")
def read_data(request: Request, db: Session = Depends(get_db)):
    counters = store.read_counters(db)
    user_clicks = get_cookie_value(request.headers.get("cookie"), CLICKS_COOKIE) or "0"
    return {
        "total_visitors": counters["total_visitors"],
        "total_clicks": counters["total_clicks"],
        "user_clicks": user_clicks,
    }


@app.post("/api/click")
def click(request: Request, db: Session = Depends(get_db)):
    cookie_value = get_cookie_value(request.headers.get("cookie"), CLICKS_COOKIE)
    user_clicks = parse_click_count(cookie_value) + 1

    store.record_click(db)
    # May already include clicks from other visitors that landed in between
    counters = store.read_counters(db)
    logger.debug("Click recorded, total_clicks=%s", counters["total_clicks"])

    response = JSONResponse({
        "total_clicks": counters["total_clicks"],
        "user_clicks": str(user_clicks),
    })
    response.set_cookie(CLICKS_COOKIE, str(user_clicks), **clicks_cookie_options())
    return response


if __name__ == "__main__":
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
