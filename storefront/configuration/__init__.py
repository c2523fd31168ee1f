from flask import Blueprint

bp = Blueprint("configuration", __name__, url_prefix="/configurations")

from . import routes  # noqa: E402,F401
