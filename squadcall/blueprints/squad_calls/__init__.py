from flask import Blueprint
bp = Blueprint("squad_calls", __name__)
# Importing is what registers routes
from . import routes  # noqa: E402,F401
