# producao_app/blueprints/admin.py
from flask import Blueprint, request, jsonify

from .. import armazenamento, fluxo
from ..auth import admin_required
from ..departamentos import SEQUENCIA

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


@admin_bp.route('/atividades', methods=['GET'])
@admin_required
def get_atividades_paginadas():
    """
    Painel do admin: pedidos com o setor atual de cada um.
    Filtros: status (all | producao | concluido), page, limit, search.
    """
    return jsonify(fluxo.painel_admin(
        status=request.args.get('status', 'all'),
        pagina=request.args.get('page', 1, type=int),
        limite=request.args.get('limit', 30, type=int),
        busca=request.args.get('search', '')
    ))


@admin_bp.route('/estatisticas', methods=['GET'])
@admin_required
def get_estatisticas():
    estatisticas = armazenamento.estatisticas_atividades()
    estatisticas['por_departamento'] = {d.value: fluxo.estatisticas_departamento(d) for d in SEQUENCIA}
    return jsonify(estatisticas)


@admin_bp.route('/departamentos', methods=['GET'])
@admin_required
def get_contagem_departamentos():
    """Quantos pedidos estão em cada setor agora, mais os já concluídos."""
    return jsonify(fluxo.contagem_por_departamento())
