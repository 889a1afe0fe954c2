# sneakerstore/errors.py
from flask import current_app
from werkzeug.exceptions import HTTPException

from .extensions import db
from .utils.api import err


class ApiError(Exception):
    """Base for every failure rendered as a JSON envelope."""

    status_code = 400
    default_message = "Yêu cầu không hợp lệ"

    def __init__(self, message=None, status_code=None, errors=None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors
        super().__init__(self.message)


class BadRequest(ApiError):
    status_code = 400


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Không có quyền truy cập"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Không đủ quyền để thực hiện hành động này"


class NotFound(ApiError):
    status_code = 404
    default_message = "Không tìm thấy tài nguyên"


class Conflict(ApiError):
    status_code = 409
    default_message = "Dữ liệu bị xung đột"


class InsufficientStock(BadRequest):
    def __init__(self, message, variant_id=None, available=None):
        super().__init__(message)
        self.variant_id = variant_id
        self.available = available


class CouponError(BadRequest):
    pass


class InvalidTransition(BadRequest):
    def __init__(self, current, requested, message=None):
        self.current = current
        self.requested = requested
        super().__init__(message or f"Không thể chuyển từ trạng thái {current} sang {requested}")


def register_jwt_handlers(jwt):
    @jwt.unauthorized_loader
    def missing_token(reason):
        return err("Không tìm thấy token xác thực", 401)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return err("Token không hợp lệ hoặc đã hết hạn", 401)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return err("Token không hợp lệ hoặc đã hết hạn", 401)


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e):
        db.session.rollback()
        return err(e.message, e.status_code, e.errors)

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        if e.code == 404:
            return err("Không tìm thấy tài nguyên", 404)
        if e.code == 405:
            return err("Phương thức không được hỗ trợ", 405)
        return err(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        db.session.rollback()
        current_app.logger.exception("unhandled error: %s", e)
        return err("Đã xảy ra lỗi không mong muốn", 500)
