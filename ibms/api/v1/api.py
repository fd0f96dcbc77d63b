from fastapi import APIRouter
from ibms.core.exceptions import ErrorResponse
from ibms.api.v1.beds import routes as beds
from ibms.api.v1.assignments import routes as assignments

# Error bodies produced by the custom exception handler
error_responses = {
    404: {"model": ErrorResponse, "description": "Bed, room, admission or assignment not found"},
    409: {"model": ErrorResponse, "description": "Current state does not allow the request"},
    500: {"model": ErrorResponse, "description": "Unexpected failure"},
}

api_router = APIRouter(responses=error_responses)
api_router.include_router(beds.router, prefix="/beds", tags=["beds"])
api_router.include_router(assignments.router, prefix="/bed-assignments", tags=["bed-assignments"])
