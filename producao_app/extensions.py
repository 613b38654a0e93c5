# producao_app/extensions.py
from datetime import datetime, timezone, timedelta
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_socketio import SocketIO
from .cache import CacheProgresso

db = SQLAlchemy()
login_manager = LoginManager()
socketio = SocketIO()
cache_progresso = CacheProgresso()
tz_brasilia = timezone(timedelta(hours=-3))


def agora_iso():
    return datetime.now(tz_brasilia).isoformat()
