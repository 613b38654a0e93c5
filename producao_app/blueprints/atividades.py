# producao_app/blueprints/atividades.py
from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from .. import armazenamento, fluxo
from ..auth import admin_required, resolver_departamento
from ..serializers import serialize_atividade, serialize_progresso, serialize_log
from ..utils import get_logs

atividades_bp = Blueprint('atividades', __name__, url_prefix='/api/atividades')


def _dados_json():
    return request.get_json(silent=True) or {}


@atividades_bp.route('', methods=['GET'])
@login_required
def listar_atividades():
    """
    Admin sem `departamento`: todos os pedidos. Com `departamento` (ou para um
    funcionário, sempre o próprio setor): a fila de pendentes do setor.
    """
    solicitado = request.args.get('departamento')
    if current_user.eh_admin and not solicitado:
        return jsonify([serialize_atividade(a) for a in armazenamento.listar_atividades()])

    departamento = resolver_departamento(solicitado)
    resultado = fluxo.atividades_pendentes(departamento)
    return jsonify({
        'departamento': departamento.value,
        'atividades': resultado.dados,
        'parcial': resultado.parcial
    })


@atividades_bp.route('', methods=['POST'])
@admin_required
def criar_atividade():
    atividade = fluxo.criar_atividade(_dados_json(), current_user)
    return jsonify(serialize_atividade(atividade)), 201


@atividades_bp.route('/concluidas', methods=['GET'])
@login_required
def listar_concluidas():
    departamento = resolver_departamento(request.args.get('departamento'))
    return jsonify(fluxo.concluidas_por_departamento(departamento))


@atividades_bp.route('/<int:atividade_id>', methods=['GET'])
@login_required
def get_atividade(atividade_id):
    atividade = armazenamento.get_atividade_ou_erro(atividade_id)
    return jsonify(serialize_atividade(atividade))


@atividades_bp.route('/<int:atividade_id>', methods=['PUT'])
@admin_required
def atualizar_atividade(atividade_id):
    atividade = fluxo.atualizar_atividade(atividade_id, _dados_json(), current_user.nome)
    return jsonify(serialize_atividade(atividade))


@atividades_bp.route('/<int:atividade_id>', methods=['DELETE'])
@admin_required
def deletar_atividade(atividade_id):
    fluxo.deletar_atividade(atividade_id, current_user.nome)
    return jsonify({'status': 'success'})


@atividades_bp.route('/<int:atividade_id>/progresso', methods=['GET'])
@login_required
def get_progresso(atividade_id):
    return jsonify(fluxo.progresso_da_atividade(atividade_id))


@atividades_bp.route('/<int:atividade_id>/historico', methods=['GET'])
@login_required
def get_historico(atividade_id):
    """Histórico do pedido, do mais recente para o mais antigo."""
    return jsonify([serialize_log(log) for log in get_logs(atividade_id)])

# --- TRANSIÇÕES ---

@atividades_bp.route('/<int:atividade_id>/concluir', methods=['POST'])
@login_required
def concluir_atividade(atividade_id):
    dados = _dados_json()
    departamento = resolver_departamento(dados.get('departamento'))
    progresso = fluxo.concluir(atividade_id, departamento, dados.get('concluido_por'), dados.get('notas'))
    return jsonify({'status': 'success', 'progresso': serialize_progresso(progresso)})


@atividades_bp.route('/<int:atividade_id>/retornar', methods=['POST'])
@login_required
def retornar_atividade(atividade_id):
    dados = _dados_json()
    departamento = resolver_departamento(dados.get('departamento'))
    anterior, atual = fluxo.retornar_para_anterior(
        atividade_id, departamento, dados.get('retornado_por'), dados.get('notas')
    )
    return jsonify({
        'status': 'success',
        'progresso_anterior': serialize_progresso(anterior),
        'progresso_atual': serialize_progresso(atual)
    })
