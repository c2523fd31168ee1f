from flask import request, jsonify, current_app
from werkzeug.security import generate_password_hash, check_password_hash
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from . import bp
from ..model import User
from ..extensions import db
from ..utils.api import api_ok, api_error


@bp.post("/register")
@jwt_required(optional=True)   # public signups; an admin caller may pick the role
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    name = (data.get("name") or "").strip()

    if not email:
        return jsonify(api_error("Email required")), 400
    if not password or len(password) < 6:
        return jsonify(api_error("Password required, min 6 chars")), 400
    if User.query.filter_by(email=email).first():
        return jsonify(api_error("Email already registered")), 409

    role = "user"
    requested_role = (data.get("role") or "user").strip().lower()
    caller_id = get_jwt_identity()
    if caller_id and requested_role in {"user", "manager", "admin"}:
        caller = db.session.get(User, int(caller_id))
        if caller and caller.role == "admin":
            role = requested_role

    user = User(email=email, password_hash=generate_password_hash(password), name=name or None, role=role)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("user %s registered (%s)", user.id, role)

    return jsonify(api_ok("Account created successfully", data={"user": user.as_dict()})), 201

@bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return jsonify(api_error("Email and password are required")), 400
    user = User.query.filter_by(email=email).first()
    if not user or not check_password_hash(user.password_hash, password):
        return jsonify(api_error("Invalid email or password")), 401

    access_token = create_access_token(identity=str(user.id))
    return jsonify(api_ok(
        "You've logged in successfully",
        data={
            "user": user.as_dict(),
            "user_logged_in": True,
            "token": access_token,
        }
    )), 200

@bp.get("/me")
@jwt_required()
def me():
    uid = get_jwt_identity()
    user = db.session.get(User, int(uid))
    if not user:
        return jsonify(api_error("user not found")), 404
    return jsonify(api_ok("me", data={"user": user.as_dict()})), 200
