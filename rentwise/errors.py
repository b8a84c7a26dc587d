from flask import jsonify
from sqlalchemy.exc import IntegrityError


class AppError(Exception):
    status_code = 400
    code = "bad_request"

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class UnauthorizedError(AppError):
    status_code = 401
    code = "unauthorized"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ForbiddenError(AppError):
    status_code = 403
    code = "forbidden"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"


class InvalidArgumentError(AppError):
    status_code = 400
    code = "invalid_argument"


class PaymentNotCompletedError(AppError):
    status_code = 400
    code = "payment_not_completed"


class PaymentNotFoundError(NotFoundError):
    code = "payment_not_found"


class GatewayUnavailableError(AppError):
    """Transient gateway failure; the caller may retry."""

    status_code = 503
    code = "gateway_unavailable"
    retry_after = 5


class InternalError(AppError):
    status_code = 500
    code = "internal_error"


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(err):
        response = jsonify({"error": err.message, "code": err.code})
        if isinstance(err, GatewayUnavailableError):
            response.headers["Retry-After"] = str(err.retry_after)
        return response, err.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(_err):
        app.logger.warning("Database integrity error")
        return jsonify({"error": "Conflict. Resource already exists.", "code": "conflict"}), 409

    @app.errorhandler(400)
    def bad_request(_err):
        return jsonify({"error": "Bad request", "code": "bad_request"}), 400

    @app.errorhandler(401)
    def unauthorized(_err):
        return jsonify({"error": "Unauthorized", "code": "unauthorized"}), 401

    @app.errorhandler(403)
    def forbidden(_err):
        return jsonify({"error": "Forbidden", "code": "forbidden"}), 403

    @app.errorhandler(404)
    def not_found(_err):
        return jsonify({"error": "Not found", "code": "not_found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(_err):
        return jsonify({"error": "Method not allowed", "code": "method_not_allowed"}), 405

    @app.errorhandler(413)
    def payload_too_large(_err):
        return jsonify({"error": "Upload too large", "code": "payload_too_large"}), 413

    @app.errorhandler(500)
    def server_error(_err):
        app.logger.exception("Internal server error")
        return jsonify({"error": "Internal server error", "code": "internal_error"}), 500
