"""
Flask blueprints for the verification API.
"""

from flask import Blueprint

# Create blueprints
professionals_bp = Blueprint("professionals", __name__)
admin_bp = Blueprint("admin", __name__)
notifications_bp = Blueprint("notifications", __name__)

# Import routes to register them
from . import professionals  # noqa: E402,F401
from . import admin  # noqa: E402,F401
from . import notifications  # noqa: E402,F401
from .helpers import Services, register_error_handlers  # noqa: E402

__all__ = [
    "professionals_bp",
    "admin_bp",
    "notifications_bp",
    "Services",
    "register_error_handlers",
]
