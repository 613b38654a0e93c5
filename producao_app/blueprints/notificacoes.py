# producao_app/blueprints/notificacoes.py
import logging

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from .. import armazenamento
from ..armazenamento import transacao
from ..serializers import serialize_notificacao

logger = logging.getLogger(__name__)

notificacoes_bp = Blueprint('notificacoes', __name__, url_prefix='/api/notificacoes')

LIMITE_PADRAO = 50


@notificacoes_bp.route('', methods=['GET'])
@login_required
def get_notificacoes():
    # As últimas notificações do usuário (lidas ou não) para popular o painel
    limite = request.args.get('limit', LIMITE_PADRAO, type=int)
    notifs = armazenamento.get_notificacoes_usuario(current_user.id, max(1, min(limite, 200)))
    return jsonify([serialize_notificacao(n) for n in notifs])


@notificacoes_bp.route('/<int:notificacao_id>/lida', methods=['PUT'])
@login_required
def marcar_lida(notificacao_id):
    notificacao = armazenamento.get_notificacao(notificacao_id)
    if not notificacao or notificacao.user_id != current_user.id:
        return jsonify({'error': 'Notificação não encontrada.'}), 404
    with transacao():
        armazenamento.marcar_como_lida(notificacao_id)
    return jsonify({'status': 'success'})


@notificacoes_bp.route('/marcar-todas-lidas', methods=['POST'])
@login_required
def mark_all_as_read():
    with transacao():
        total = armazenamento.marcar_todas_como_lidas(current_user.id)
    return jsonify({'status': 'success', 'marcadas': total})


@notificacoes_bp.route('', methods=['DELETE'])
@login_required
def clear_all_notifications():
    """Exclui TODAS as notificações do usuário atual."""
    with transacao():
        num_deleted = armazenamento.limpar_notificacoes(current_user.id)
    logger.info(f"Excluídas {num_deleted} notificações do usuário {current_user.id}.")
    return jsonify({'status': 'success', 'message': f'{num_deleted} notificações foram excluídas.'})
