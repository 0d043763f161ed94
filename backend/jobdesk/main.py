from contextlib import asynccontextmanager

from fastapi import FastAPI

from jobdesk.db import create_tables, database
from jobdesk.logging_config import setup_logging
from jobdesk.routers import clients, expenses, materials, quotes, reports, templates, trackings, transactions

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_tables()
    await database.connect()
    try:
        yield
    finally:
        await database.disconnect()


app = FastAPI(title="jobdesk", lifespan=lifespan)
app.include_router(quotes.router)
app.include_router(clients.router)
app.include_router(trackings.router)
app.include_router(materials.router)
app.include_router(expenses.router)
app.include_router(transactions.router)
app.include_router(templates.router)
app.include_router(reports.router)


@app.get("/health")
async def health():
    return {"ok": True}
