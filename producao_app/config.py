# producao_app/config.py
import os
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))


def _bool_env(nome, padrao):
    valor = os.environ.get(nome)
    if valor is None:
        return padrao
    return valor.strip().lower() in ('1', 'true', 'sim', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'troque-esta-chave-em-producao')

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL', 'sqlite:///' + os.path.join(BASE_DIR, 'producao_local.db')
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    TIMEOUT_CONSULTA_MS = int(os.environ.get('TIMEOUT_CONSULTA_MS', 5000))

    # Cache de atividades pendentes por setor
    CACHE_TTL_SEGUNDOS = float(os.environ.get('CACHE_TTL_SEGUNDOS', 5))
    CACHE_INTERVALO_CURTO = float(os.environ.get('CACHE_INTERVALO_CURTO', 3))
    CACHE_INTERVALO_LONGO = float(os.environ.get('CACHE_INTERVALO_LONGO', 10))
    CACHE_LIMIAR_BACKLOG = int(os.environ.get('CACHE_LIMIAR_BACKLOG', 50))
    CACHE_TTL_PAINEL_SEGUNDOS = 30
    AQUECER_CACHE = _bool_env('AQUECER_CACHE', True)
    LIMITE_FALLBACK = 20

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'teste'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    AQUECER_CACHE = False
    LOG_LEVEL = 'WARNING'


def engine_options(uri, timeout_ms):
    """Opções do engine com timeout de consulta conforme o banco usado."""
    opcoes = {'pool_pre_ping': True}
    if uri.startswith('postgresql'):
        opcoes['connect_args'] = {'options': f'-c statement_timeout={timeout_ms}'}
    elif uri.startswith('sqlite'):
        opcoes['connect_args'] = {'timeout': timeout_ms / 1000}
    return opcoes
