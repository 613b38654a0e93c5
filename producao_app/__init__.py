# producao_app/__init__.py
import logging

from flask import Flask, jsonify
from sqlalchemy.exc import OperationalError

from .config import Config, engine_options
from .erros import registrar_handlers
from .extensions import db, login_manager, socketio, cache_progresso

logger = logging.getLogger(__name__)


def configurar_logging(nivel):
    logging.basicConfig(
        level=getattr(logging, str(nivel).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.config.setdefault(
        'SQLALCHEMY_ENGINE_OPTIONS',
        engine_options(app.config['SQLALCHEMY_DATABASE_URI'], app.config['TIMEOUT_CONSULTA_MS'])
    )
    configurar_logging(app.config.get('LOG_LEVEL', 'INFO'))
    logger.info(f"Banco de dados: {app.config['SQLALCHEMY_DATABASE_URI']}")

    # Receptores dos sinais e handlers do Flask-Login e do Socket.IO; antes do socketio.init_app
    from . import auth, notificacoes, push  # noqa: F401

    db.init_app(app)
    login_manager.init_app(app)
    socketio.init_app(app, async_mode='threading')
    cache_progresso.init_app(app)

    registrar_handlers(app)

    @app.errorhandler(OperationalError)
    def tratar_banco_indisponivel(erro):
        db.session.rollback()
        logger.error(f"ERRO de conexão/timeout no banco: {erro}")
        return jsonify({'error': 'Banco de dados indisponível no momento. Tente novamente.'}), 503

    from .blueprints.usuarios import usuarios_bp
    from .blueprints.atividades import atividades_bp
    from .blueprints.departamentos import departamentos_bp
    from .blueprints.notificacoes import notificacoes_bp
    from .blueprints.reimpressoes import reimpressoes_bp
    from .blueprints.admin import admin_bp

    app.register_blueprint(usuarios_bp)
    app.register_blueprint(atividades_bp)
    app.register_blueprint(departamentos_bp)
    app.register_blueprint(notificacoes_bp)
    app.register_blueprint(reimpressoes_bp)
    app.register_blueprint(admin_bp)

    # Cria as tabelas no banco de dados se não existirem
    with app.app_context():
        from . import models  # noqa: F401
        db.create_all()

    if app.config.get('AQUECER_CACHE'):
        from .fluxo import iniciar_aquecimento
        iniciar_aquecimento(app)

    return app, socketio
