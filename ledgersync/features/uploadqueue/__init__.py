from fastapi import APIRouter

# Create router at module level with the correct prefix
router = APIRouter(prefix="/api/import-queue")

# Import routes to register them
from .routes_uploadqueue import *  # This will register the routes with our router
