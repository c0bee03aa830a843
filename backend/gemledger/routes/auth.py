# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/gemledger/routes/auth.py
"""
Authentication API routes

Login issues a bearer session token; logout revokes it.
Users are created from the CLI only (flask users create).
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body: {"username": "...", "password": "..."}
    (username may also be sent as "email")

    Returns:
        200: {"user", "token", "session"}
        400: missing credentials
        401: invalid credentials
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username/email and password required"}), 400

        user = auth_service.authenticate(db.session, username, password)
        if not user:
            current_app.logger.warning("Failed login for %s", username)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            db.session,
            user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(db.session, bearer_token())
        return jsonify({"message": "Logged out", "user_id": g.current_user.id}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500
