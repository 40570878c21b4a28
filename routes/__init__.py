from .health import health_bp
from .auth import auth_bp
from .complaints import complaints_bp
from .admin import admin_bp
from .language import language_bp
