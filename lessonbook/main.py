from fastapi import FastAPI
from .api.routes import bookings, credits, jobs, misc
from .db import models  # noqa: F401
from .db.session import Base, engine


app = FastAPI(title="Lessonbook API", version="1.0.0")

app.include_router(bookings.router, prefix="/api/v1")
app.include_router(credits.router, prefix="/api/v1")
app.include_router(jobs.router, prefix="/api/v1")
app.include_router(misc.router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event() -> None:
    Base.metadata.create_all(bind=engine)
