# producao_app/auth.py
from functools import wraps

from flask import jsonify
from flask_login import current_user, login_required

from . import armazenamento
from .departamentos import Departamento
from .erros import ErroAutorizacao, ErroValidacao
from .extensions import login_manager


@login_manager.user_loader
def load_user(user_id):
    """Carrega o usuário da sessão para o Flask-Login."""
    try:
        return armazenamento.get_usuario(int(user_id))
    except (TypeError, ValueError):
        return None


@login_manager.unauthorized_handler
def nao_autenticado():
    return jsonify({'error': 'Faça login para continuar.'}), 401


def admin_required(f):
    """Exige login e papel de administrador."""
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.eh_admin:
            raise ErroAutorizacao('Acesso negado. Requer função de Administrador.')
        return f(*args, **kwargs)
    return decorated_function


def resolver_departamento(solicitado=None):
    """
    Setor em nome do qual o usuário atual age. Um funcionário sempre age pelo
    próprio setor; o admin pode agir por qualquer um, mas precisa informar qual.
    """
    if current_user.eh_admin:
        if not solicitado:
            raise ErroValidacao('Informe o setor em nome do qual a ação será feita.')
        return Departamento.de(solicitado)
    proprio = Departamento.de(current_user.role)
    if solicitado and Departamento.de(solicitado) != proprio:
        raise ErroAutorizacao('Você só pode agir pelo seu próprio setor.')
    return proprio


def exigir_acesso_ao_departamento(departamento):
    """Leitura de dados de um setor: o próprio setor ou o admin."""
    departamento = Departamento.de(departamento)
    if not current_user.eh_admin and current_user.role != departamento.value:
        raise ErroAutorizacao('Acesso negado a este setor.')
    return departamento
