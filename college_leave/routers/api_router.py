from fastapi import APIRouter
from college_leave.routers import leave, reports

# Routers are aggregated here and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(leave.router, tags=["Leave"])
api_router.include_router(reports.router, tags=["Reports"])
