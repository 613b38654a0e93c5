"""
Quadro de Produção - fixtures comuns dos testes
"""
import logging

import pytest

from producao_app import create_app, armazenamento, fluxo
from producao_app.armazenamento import transacao
from producao_app.config import TestingConfig
from producao_app.departamentos import SEQUENCIA, PAPEL_ADMIN
from producao_app.extensions import db

logger = logging.getLogger('tests')

SENHA = 'senha123'


# ============================================================================
# APLICAÇÃO E BANCO
# ============================================================================

@pytest.fixture
def app(tmp_path):
    """App de teste sobre um arquivo SQLite temporário."""
    class ConfigTeste(TestingConfig):
        SQLALCHEMY_DATABASE_URI = 'sqlite:///' + str(tmp_path / 'producao_teste.db')

    app, _ = create_app(ConfigTeste)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def ctx(app):
    """Contexto de aplicação para chamar o fluxo e o armazenamento diretamente."""
    with app.app_context():
        yield app


# ============================================================================
# USUÁRIOS E LOGIN
# ============================================================================

@pytest.fixture
def usuarios(app):
    """Um usuário por setor (username = nome do setor) e um admin. Retorna papel -> id."""
    ids = {}
    with app.app_context():
        with transacao():
            for departamento in SEQUENCIA:
                usuario = armazenamento.criar_usuario(departamento.value, SENHA,
                                                      f'Equipe {departamento.value}', departamento.value)
                ids[departamento.value] = usuario.id
            ids[PAPEL_ADMIN] = armazenamento.criar_usuario('admin', SENHA, 'Administrador', PAPEL_ADMIN).id
    return ids


@pytest.fixture
def login(app, usuarios):
    """Retorna um test client já autenticado com o usuário informado."""
    def _login(username):
        client = app.test_client()
        resposta = client.post('/api/usuarios/login', json={'username': username, 'password': SENHA})
        assert resposta.status_code == 200, resposta.get_json()
        return client
    return _login


@pytest.fixture
def usuario(ctx, usuarios):
    """Busca o objeto Usuario pelo papel."""
    def _usuario(papel):
        return armazenamento.get_usuario(usuarios[papel])
    return _usuario


@pytest.fixture
def novo_pedido(ctx, usuario):
    """Cria um pedido pelo fluxo (como o admin) e retorna o id."""
    def _novo(**campos):
        dados = {'titulo': 'Camisa do time', 'quantidade': 10}
        dados.update(campos)
        return fluxo.criar_atividade(dados, usuario(PAPEL_ADMIN)).id
    return _novo
