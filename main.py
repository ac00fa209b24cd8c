from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from unitsync.api.units import router as units_router

app = FastAPI(title="unitsync")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    return {"status": "ok", "message": "unitsync running"}


app.include_router(units_router)
