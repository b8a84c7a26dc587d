from datetime import datetime, timezone

from flask import current_app
from itsdangerous import BadSignature, URLSafeTimedSerializer
from sqlalchemy.exc import IntegrityError

from rentwise.errors import ConflictError, ForbiddenError, InvalidArgumentError, UnauthorizedError
from rentwise.extensions import bcrypt, db
from rentwise.models import User

TOKEN_SALT = "rentwise-api-token"
SELF_SERVICE_ROLES = {"owner", "renter"}


class AuthService:
    @staticmethod
    def _serializer():
        return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)

    @staticmethod
    def register_user(full_name, email, password, role):
        role = (role or "").strip().lower()
        if role not in SELF_SERVICE_ROLES:
            raise InvalidArgumentError("Invalid role.")

        normalized_email = (email or "").strip().lower()
        if not (full_name or "").strip() or not normalized_email or not password:
            raise InvalidArgumentError("Name, email, and password are required.")
        if len(password) < 8:
            raise InvalidArgumentError("Password must be at least 8 characters.")

        if User.query.filter_by(email=normalized_email).first():
            raise ConflictError("Email already registered.")

        user = User(
            full_name=full_name.strip(),
            email=normalized_email,
            role=role,
            password_hash=bcrypt.generate_password_hash(password).decode("utf-8"),
        )
        try:
            db.session.add(user)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError("Email already registered.") from exc
        return user

    @staticmethod
    def authenticate_user(email, password):
        user = User.query.filter_by(email=(email or "").strip().lower()).first()
        if not user:
            raise UnauthorizedError("Invalid credentials.")

        try:
            is_valid = bcrypt.check_password_hash(user.password_hash, password or "")
        except ValueError:
            is_valid = False
        if not is_valid:
            raise UnauthorizedError("Invalid credentials.")
        if not user.is_active_user:
            raise ForbiddenError("User account is inactive.")

        user.last_login = datetime.now(timezone.utc)
        db.session.commit()
        return user

    @staticmethod
    def issue_token(user):
        return AuthService._serializer().dumps({"uid": user.id})

    @staticmethod
    def load_user_from_token(token):
        if not token:
            return None
        try:
            data = AuthService._serializer().loads(
                token, max_age=current_app.config["API_TOKEN_MAX_AGE_SECONDS"]
            )
        except BadSignature:
            return None
        user = db.session.get(User, data.get("uid"))
        if not user or not user.is_active_user:
            return None
        return user
