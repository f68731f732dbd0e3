from functools import wraps

from flask import current_app, jsonify
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.exceptions import (  # noqa: F401  re-exported for the services
    BadRequest, Conflict, Forbidden, HTTPException, NotFound, Unauthorized,
)


class OperationFailed(BadRequest):
    """Unexpected failure behind a service call, reported without internals."""


def guarded(message):
    """Wrap a service method so only domain errors reach the caller as-is.

    The session is rolled back on every failure. ``HTTPException`` subclasses
    are re-raised untouched. A lost optimistic-lock race or a constraint
    violation (a uniqueness check lost to a concurrent insert) becomes
    ``Conflict``. Anything else is logged and replaced by
    ``OperationFailed(message)``.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except HTTPException:
                self.session.rollback()
                raise
            except StaleDataError:
                self.session.rollback()
                current_app.logger.warning(f"{message}: concurrent modification")
                raise Conflict("The order was modified concurrently, please retry")
            except IntegrityError:
                self.session.rollback()
                current_app.logger.warning(f"{message}: integrity violation")
                raise Conflict("The record clashes with existing data")
            except Exception:
                self.session.rollback()
                current_app.logger.exception(message)
                raise OperationFailed(message)
        return wrapper
    return decorator


def register_error_handlers(app):
    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"status": e.code, "error": e.name, "message": e.description}), e.code

    @app.errorhandler(Exception)
    def server_error(e):
        app.logger.exception(f"Unhandled error: {e}")
        return jsonify({"status": 500, "error": "Internal Server Error",
                        "message": "Something broke on our end"}), 500
