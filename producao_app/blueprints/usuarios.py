# producao_app/blueprints/usuarios.py
import logging

from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user

from .. import armazenamento
from ..armazenamento import transacao
from ..auth import admin_required
from ..departamentos import PAPEIS_VALIDOS
from ..serializers import serialize_usuario

logger = logging.getLogger(__name__)

usuarios_bp = Blueprint('usuarios', __name__, url_prefix='/api/usuarios')

TAMANHO_MINIMO_SENHA = 6


def _validar_papel(role):
    return role in PAPEIS_VALIDOS


@usuarios_bp.route('/login', methods=['POST'])
def login():
    """Login local. Verifica usuário e senha e abre a sessão."""
    dados = request.get_json(silent=True)
    if not dados or not dados.get('username') or not dados.get('password'):
        return jsonify({'error': 'Usuário e senha são obrigatórios.'}), 400

    usuario = armazenamento.get_usuario_por_username(dados['username'].strip())
    if usuario and usuario.check_password(dados['password']):
        login_user(usuario)
        logger.info(f"Login de '{usuario.username}' ({usuario.role})")
        return jsonify(serialize_usuario(usuario))

    return jsonify({'error': 'Usuário ou senha inválidos'}), 401


@usuarios_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'status': 'success'})


@usuarios_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify(serialize_usuario(current_user))


@usuarios_bp.route('', methods=['GET'])
@admin_required
def get_all_users():
    return jsonify([serialize_usuario(u) for u in armazenamento.listar_usuarios()])


@usuarios_bp.route('', methods=['POST'])
@admin_required
def create_user():
    dados = request.get_json(silent=True) or {}
    username, password, nome, role = dados.get('username'), dados.get('password'), dados.get('nome'), dados.get('role')

    if not all([username, password, nome, role]):
        return jsonify({'error': 'Todos os campos são obrigatórios.'}), 400
    if not _validar_papel(role):
        return jsonify({'error': f"Papel inválido: '{role}'."}), 400
    if len(password) < TAMANHO_MINIMO_SENHA:
        return jsonify({'error': 'A senha deve ter no mínimo 6 caracteres.'}), 400

    with transacao():
        novo_usuario = armazenamento.criar_usuario(username.strip(), password, nome.strip(), role)
    logger.info(f"Usuário '{novo_usuario.username}' criado por {current_user.username}")
    return jsonify(serialize_usuario(novo_usuario)), 201


@usuarios_bp.route('/<int:user_id>', methods=['GET'])
@admin_required
def get_user(user_id):
    return jsonify(serialize_usuario(armazenamento.get_usuario_ou_erro(user_id)))


@usuarios_bp.route('/<int:user_id>', methods=['PUT'])
@admin_required
def update_user(user_id):
    dados = request.get_json(silent=True) or {}
    if 'role' in dados and not _validar_papel(dados['role']):
        return jsonify({'error': f"Papel inválido: '{dados['role']}'."}), 400

    with transacao():
        usuario = armazenamento.atualizar_usuario(user_id, dados)
    return jsonify(serialize_usuario(usuario))


@usuarios_bp.route('/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    if user_id == current_user.id:
        return jsonify({'error': 'Você não pode excluir o próprio usuário.'}), 400
    with transacao():
        armazenamento.deletar_usuario(user_id)
    logger.info(f"Usuário {user_id} excluído por {current_user.username}")
    return jsonify({'status': 'success'})


@usuarios_bp.route('/<int:user_id>/senha', methods=['POST'])
@login_required
def set_user_password(user_id):
    if user_id != current_user.id and not current_user.eh_admin:
        return jsonify({'error': 'Acesso negado.'}), 403
    dados = request.get_json(silent=True) or {}
    new_password = dados.get('password')
    if not new_password or len(new_password) < TAMANHO_MINIMO_SENHA:
        return jsonify({'error': 'A senha é obrigatória e deve ter no mínimo 6 caracteres.'}), 400

    with transacao():
        usuario = armazenamento.get_usuario_ou_erro(user_id)
        usuario.set_password(new_password)
    return jsonify({'status': 'success', 'message': 'Senha atualizada com sucesso.'})
