# producao_app/blueprints/reimpressoes.py
from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from .. import armazenamento, reimpressao
from ..auth import admin_required, exigir_acesso_ao_departamento
from ..serializers import serialize_reimpressao

reimpressoes_bp = Blueprint('reimpressoes', __name__, url_prefix='/api/reimpressoes')


@reimpressoes_bp.route('', methods=['POST'])
@login_required
def criar_reimpressao():
    dados = request.get_json(silent=True) or {}
    if not dados.get('atividade_id'):
        return jsonify({'error': 'atividade_id é obrigatório.'}), 400
    try:
        atividade_id = int(dados['atividade_id'])
    except (TypeError, ValueError):
        return jsonify({'error': 'atividade_id inválido.'}), 400

    solicitacao = reimpressao.criar_solicitacao(atividade_id, dados, current_user)
    return jsonify(serialize_reimpressao(solicitacao)), 201


@reimpressoes_bp.route('', methods=['GET'])
@admin_required
def listar_por_status():
    status = request.args.get('status', 'pending')
    return jsonify([serialize_reimpressao(r) for r in reimpressao.listar_por_status(status)])


@reimpressoes_bp.route('/<int:solicitacao_id>', methods=['GET'])
@login_required
def get_reimpressao(solicitacao_id):
    solicitacao = armazenamento.get_reimpressao_ou_erro(solicitacao_id)
    return jsonify(serialize_reimpressao(solicitacao))


@reimpressoes_bp.route('/atividade/<int:atividade_id>', methods=['GET'])
@login_required
def listar_por_atividade(atividade_id):
    return jsonify([serialize_reimpressao(r) for r in reimpressao.listar_por_atividade(atividade_id)])


@reimpressoes_bp.route('/para-departamento/<string:departamento>', methods=['GET'])
@login_required
def listar_para_departamento(departamento):
    """Solicitações que o setor precisa atender."""
    departamento = exigir_acesso_ao_departamento(departamento)
    solicitacoes = reimpressao.listar_para_departamento(departamento, request.args.get('status'))
    return jsonify([serialize_reimpressao(r) for r in solicitacoes])


@reimpressoes_bp.route('/do-departamento/<string:departamento>', methods=['GET'])
@login_required
def listar_do_departamento(departamento):
    """Solicitações feitas pelo setor."""
    departamento = exigir_acesso_ao_departamento(departamento)
    solicitacoes = reimpressao.listar_do_departamento(departamento, request.args.get('status'))
    return jsonify([serialize_reimpressao(r) for r in solicitacoes])


@reimpressoes_bp.route('/<int:solicitacao_id>/status', methods=['PUT'])
@login_required
def atualizar_status(solicitacao_id):
    dados = request.get_json(silent=True) or {}
    if not dados.get('status'):
        return jsonify({'error': 'O novo status é obrigatório.'}), 400
    solicitacao = reimpressao.atualizar_status(
        solicitacao_id, dados['status'], current_user,
        processado_por=dados.get('processado_por'),
        observacoes=dados.get('observacoes_resposta')
    )
    return jsonify(serialize_reimpressao(solicitacao))
