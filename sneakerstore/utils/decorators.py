# ------- sneakerstore/utils/decorators.py -------
from functools import wraps
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..errors import Unauthorized, Forbidden
from ..extensions import db
from ..model.user import User


def current_user() -> User | None:
    """Resolve the JWT identity of the current request to a User."""
    verify_jwt_in_request()
    uid = get_jwt_identity()
    try:
        uid = int(uid)
    except (TypeError, ValueError):
        uid = None
    user = db.session.get(User, uid) if uid else None
    return user if user and user.is_active else None


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not current_user():
            raise Unauthorized("Người dùng không tồn tại")
        return fn(*args, **kwargs)
    return wrapper


def role_required(*roles, message: str | None = None):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            u = current_user()
            if not u:
                raise Unauthorized("Người dùng không tồn tại")
            if u.role not in roles:
                raise Forbidden(message or "Bạn không có quyền truy cập tài nguyên này")
            return fn(*args, **kwargs)
        return wrapper
    return decorator


admin_required = role_required("admin")
