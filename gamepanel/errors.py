from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError


class APIError(Exception):
    status = 400

    def __init__(self, code: str, message: str, status: int | None = None, details: dict | None = None):
        self.code = code
        self.message = message
        if status is not None:
            self.status = status
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            'error': {
                'code': self.code,
                'message': self.message,
                'details': self.details,
            }
        }


class NotFoundError(APIError):
    def __init__(self, code: str = 'NOT_FOUND', message: str = 'Resource not found', details: dict | None = None):
        super().__init__(code, message, 404, details)


class ValidationError(APIError):
    def __init__(self, code: str = 'VALIDATION_ERROR', message: str = 'Invalid input', details: dict | None = None):
        super().__init__(code, message, 422, details)


class ConflictError(APIError):
    def __init__(self, code: str = 'CONFLICT', message: str = 'Resource already exists', details: dict | None = None):
        super().__init__(code, message, 409, details)


class PersistenceError(APIError):
    def __init__(self, code: str = 'PERSISTENCE_ERROR', message: str = 'Data store unavailable', details: dict | None = None):
        super().__init__(code, message, 503, details)


def register_error_handlers(app: Flask) -> None:
    from gamepanel import db

    @app.errorhandler(APIError)
    def api_error_handler(exc: APIError):
        return jsonify(exc.to_dict()), exc.status

    @app.errorhandler(SQLAlchemyError)
    def store_error_handler(exc: SQLAlchemyError):
        db.session.rollback()
        app.logger.error(f"[store-error] {exc.__class__.__name__}: {exc}")
        err = PersistenceError(message=str(exc) if app.debug else 'Data store unavailable')
        return jsonify(err.to_dict()), err.status

    @app.errorhandler(404)
    def not_found_handler(exc):
        err = NotFoundError()
        return jsonify(err.to_dict()), err.status
