"""API router exports."""
from survai.api.tracking import router as tracking
from survai.api.presentation import router as presentation
