"""Dashboard: letter counts per status and the most recent letters."""

from __future__ import annotations

from flask import Blueprint, render_template
from flask_login import login_required

from ...letters import count_by_status, list_letters

dashboard_bp = Blueprint("dashboard", __name__)


@dashboard_bp.route("/dashboard")
@login_required
def index():
    letters = list_letters()
    return render_template(
        "dashboard/index.html",
        stats=count_by_status(letters),
        total=len(letters),
        recent_letters=letters[:5],
    )
