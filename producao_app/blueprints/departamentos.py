# producao_app/blueprints/departamentos.py
from flask import Blueprint, jsonify
from flask_login import login_required

from .. import fluxo
from ..auth import exigir_acesso_ao_departamento
from ..departamentos import SEQUENCIA

departamentos_bp = Blueprint('departamentos', __name__, url_prefix='/api/departamentos')


@departamentos_bp.route('', methods=['GET'])
@login_required
def listar_departamentos():
    """Setores na ordem do fluxo."""
    return jsonify([
        {
            'id': d.value,
            'ordem': d.indice,
            'anterior': d.anterior().value if d.anterior() else None,
            'proximo': d.proximo().value if d.proximo() else None
        }
        for d in SEQUENCIA
    ])


@departamentos_bp.route('/<string:departamento>/estatisticas', methods=['GET'])
@login_required
def get_estatisticas(departamento):
    departamento = exigir_acesso_ao_departamento(departamento)
    return jsonify(fluxo.estatisticas_departamento(departamento))
