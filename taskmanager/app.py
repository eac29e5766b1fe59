import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler

from flask import Flask, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import get_config
from .errors import TaskManagerError
from .extensions import bcrypt, cors, jwt, limiter
from .models import db
from .security import ensure_default_admin

# ============================================
# Logging
# ============================================

def setup_logging(app):
    """
    Send application logs to rotating files

    Handlers go on the package logger, so the services' module loggers
    end up in the same files as app.logger. Skipped in debug and tests.
    """
    package_logger = logging.getLogger(__name__.split('.')[0])
    package_logger.setLevel(app.config['LOG_LEVEL'])

    if app.debug or app.testing:
        return

    log_dir = app.config['LOG_DIR']
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )

    info_handler = RotatingFileHandler(
        os.path.join(log_dir, 'app.log'),
        maxBytes=10240000,  # 10MB
        backupCount=10
    )
    info_handler.setLevel(logging.INFO)
    info_handler.setFormatter(formatter)

    error_handler = RotatingFileHandler(
        os.path.join(log_dir, 'error.log'),
        maxBytes=10240000,
        backupCount=10
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)

    package_logger.addHandler(info_handler)
    package_logger.addHandler(error_handler)

    app.logger.info('Application startup')

# ============================================
# Application factory
# ============================================

def create_app(config_class=None):
    config_class = config_class or get_config()
    config_class.validate()

    app = Flask(__name__)
    app.config.from_object(config_class)

    setup_logging(app)

    db.init_app(app)
    jwt.init_app(app)
    bcrypt.init_app(app)
    limiter.init_app(app)
    cors.init_app(
        app,
        origins=app.config['CORS_ORIGINS'],
        supports_credentials=True,
        methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
        allow_headers=['Content-Type', 'Authorization']
    )

    with app.app_context():
        db.create_all()
        app.logger.info('Database tables created')
        if app.config['SEED_DEFAULT_ADMIN']:
            ensure_default_admin()

    register_blueprints(app)
    register_jwt_handlers(app)
    register_error_handlers(app)
    register_request_hooks(app)
    register_core_routes(app)

    return app


def register_blueprints(app):
    from .account import account_bp
    from .desks import desks_bp
    from .projects import projects_bp
    from .tasks import tasks_bp
    from .users import users_bp

    app.register_blueprint(account_bp, url_prefix='/api/account')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(projects_bp, url_prefix='/api/project')
    app.register_blueprint(desks_bp, url_prefix='/api/desk')
    app.register_blueprint(tasks_bp, url_prefix='/api/task')

# ============================================
# JWT errors
# ============================================

def register_jwt_handlers(app):

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        current_app.logger.warning(f"Expired token attempt from: {request.remote_addr}")
        return jsonify({
            'error': 'token_expired',
            'message': 'Access token expired; request a new one from /api/account/auth'
        }), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        current_app.logger.warning(f"Invalid token attempt from: {request.remote_addr}, error: {error}")
        return jsonify({
            'error': 'invalid_token',
            'message': 'Access token is malformed or was not issued by this server'
        }), 401

    @jwt.unauthorized_loader
    def unauthorized_callback(error):
        current_app.logger.warning(f"Unauthorized access attempt from: {request.remote_addr}, error: {error}")
        return jsonify({
            'error': 'authorization_required',
            'message': 'Send "Authorization: Bearer <token>"; tokens come from /api/account/auth or /api/account/login'
        }), 401

# ============================================
# Global error handling
# ============================================

def register_error_handlers(app):

    @app.errorhandler(TaskManagerError)
    def handle_task_manager_error(error):
        db.session.rollback()

        if error.status_code >= 500:
            app.logger.error(f"Internal error: {error.message}", exc_info=True)
            return jsonify({
                'error': 'internal_server_error',
                'message': 'Internal server error',
                'status': 500
            }), 500

        app.logger.warning(f"{error.error_code} on {request.method} {request.path}: {error.message}")
        return jsonify({
            'error': error.error_code,
            'message': error.message,
            'status': error.status_code
        }), error.status_code

    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({
            'error': 'bad_request',
            'message': 'Request could not be parsed',
            'status': 400
        }), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            'error': 'not_found',
            'message': 'No such endpoint or entity',
            'status': 404
        }), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({
            'error': 'method_not_allowed',
            'message': 'Method not supported on this endpoint; see GET / for the endpoint list',
            'status': 405
        }), 405

    @app.errorhandler(429)
    def rate_limit_exceeded(error):
        app.logger.warning(f"Rate limit exceeded from: {request.remote_addr}")
        return jsonify({
            'error': 'rate_limit_exceeded',
            'message': 'Rate limit reached for this endpoint',
            'status': 429
        }), 429

    @app.errorhandler(500)
    def internal_server_error(error):
        """Generic body only; the traceback goes to the log."""
        db.session.rollback()
        app.logger.error(f"Internal server error: {str(error)}", exc_info=True)
        return jsonify({
            'error': 'internal_server_error',
            'message': 'Internal server error',
            'status': 500
        }), 500

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return jsonify({
            'error': error.name.lower().replace(' ', '_'),
            'message': error.description,
            'status': error.code
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        app.logger.error(f"Unexpected error: {str(error)}", exc_info=True)
        return jsonify({
            'error': 'unexpected_error',
            'message': 'Internal server error',
            'status': 500
        }), 500

# ============================================
# Request/Response logging
# ============================================

def register_request_hooks(app):

    @app.before_request
    def log_request():
        if not app.debug:
            app.logger.info(f"Request: {request.method} {request.path} from {request.remote_addr}")

    @app.after_request
    def log_response(response):
        if not app.debug:
            app.logger.info(f"Response: {response.status_code} for {request.method} {request.path}")

        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-XSS-Protection'] = '1; mode=block'

        return response

# ============================================
# Health check and API index
# ============================================

def register_core_routes(app):

    @app.route('/health', methods=['GET'])
    def health_check():
        """Database round-trip for load balancers and monitoring"""
        try:
            db.session.execute(text('SELECT 1'))
        except SQLAlchemyError as e:
            db.session.rollback()
            app.logger.error(f"Health check failed: {str(e)}")
            return jsonify({
                'status': 'unhealthy',
                'database': 'disconnected',
                'error': 'Database connection failed'
            }), 503

        return jsonify({
            'status': 'healthy',
            'database': 'connected',
            'timestamp': datetime.utcnow().isoformat()
        }), 200

    @app.route('/')
    @limiter.limit('10 per minute')
    def home():
        return jsonify({
            'message': 'Task Desk API',
            'version': app.config['API_VERSION'],
            'endpoints': {
                'health': {'path': '/health', 'methods': ['GET']},
                'account': {
                    'auth': {'path': '/api/account/auth', 'methods': ['POST']},
                    'login': {'path': '/api/account/login', 'methods': ['POST']},
                    'info': {'path': '/api/account/info', 'methods': ['GET']},
                    'update': {'path': '/api/account/update', 'methods': ['PUT']}
                },
                'users': {
                    'create': {'path': '/api/users/create', 'methods': ['POST']},
                    'bulk_create': {'path': '/api/users/create/bulk', 'methods': ['POST']},
                    'list': {'path': '/api/users/all', 'methods': ['GET']},
                    'detail': {'path': '/api/users/:id', 'methods': ['GET', 'PUT', 'DELETE']}
                },
                'projects': {
                    'create': {'path': '/api/project/create', 'methods': ['POST']},
                    'list': {'path': '/api/project/all', 'methods': ['GET']},
                    'by_user': {'path': '/api/project/user/:user_id', 'methods': ['GET']},
                    'detail': {'path': '/api/project/:id', 'methods': ['GET', 'PUT', 'DELETE']},
                    'members': {'path': '/api/project/:id/users/:user_id', 'methods': ['POST', 'DELETE']}
                },
                'desks': {
                    'create': {'path': '/api/desk/create', 'methods': ['POST']},
                    'list': {'path': '/api/desk/all', 'methods': ['GET']},
                    'detail': {'path': '/api/desk/:id', 'methods': ['GET', 'PUT', 'DELETE']}
                },
                'tasks': {
                    'create': {'path': '/api/task/create', 'methods': ['POST']},
                    'list': {'path': '/api/task', 'methods': ['GET']},
                    'by_desk': {'path': '/api/task/desk/:desk_id', 'methods': ['GET']},
                    'by_column': {'path': '/api/task/column/:column_id', 'methods': ['GET']},
                    'my_tasks': {'path': '/api/task/my-tasks', 'methods': ['GET']},
                    'detail': {'path': '/api/task/:id', 'methods': ['GET', 'PUT', 'DELETE']},
                    'move': {'path': '/api/task/:id/move?newColumnId=', 'methods': ['PUT']},
                    'assign': {'path': '/api/task/:id/assign?executorId=', 'methods': ['PUT']}
                }
            },
            'rate_limits': {
                'default': app.config['RATELIMIT_DEFAULT'],
                'login': app.config['LOGIN_RATE_LIMIT']
            }
        })
