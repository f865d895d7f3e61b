from fastapi import APIRouter

# Create router at module level with the correct prefix
router = APIRouter(prefix="/api/subscription")

# Import routes to register them
from .routes_billing import *  # This will register the routes with our router
