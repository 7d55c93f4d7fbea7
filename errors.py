# errors.py
"""
统一的异常类型和 Flask 错误处理

所有错误响应都是 {"error": "..."}，可选附带 details / existingWord。
"""
import logging

from flask import jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class VocabError(Exception):
    """业务异常基类"""
    status_code = 500

    def __init__(self, message, details=None, extra=None):
        super().__init__(message)
        self.message = message
        self.details = details
        # 合并进响应体顶层的附加字段，例如 existingWord
        self.extra = extra or {}

    def to_dict(self):
        data = {'error': self.message}
        if self.details is not None:
            data['details'] = self.details
        data.update(self.extra)
        return data


class ValidationError(VocabError):
    """输入缺失或格式错误"""
    status_code = 400


class NotFoundError(VocabError):
    status_code = 404


class ConflictError(VocabError):
    """唯一键冲突，例如重复的英文单词"""
    status_code = 409


class StorageError(VocabError):
    """数据库操作失败（事务已回滚）"""
    status_code = 500


def error_response(message, status_code):
    return jsonify({'error': message}), status_code


def register_error_handlers(app, db):
    """注册到 Flask app，保证任何错误都以 JSON 返回且不会让进程崩溃"""

    @app.errorhandler(VocabError)
    def handle_vocab_error(error):
        if error.status_code >= 500:
            logger.error("%s %s -> %s", request.method, request.path, error.message)
        else:
            logger.warning("%s %s -> %s", request.method, request.path, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(error):
        db.session.rollback()
        logger.exception("数据库操作失败: %s %s", request.method, request.path)
        return error_response('Database operation failed', 500)

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return error_response(error.description or error.name, error.code)
