# producao_app/push.py
"""
Envio em tempo real (Socket.IO) das mudanças do fluxo para os painéis abertos.

Cada conexão autenticada entra na sala do seu papel: o nome do setor, ou
'admin'. O envio é só um aviso para a tela recarregar a fila; quem está
desconectado vê as mudanças pelas notificações gravadas no banco. Falhas de
envio não chegam a quem fez a transição.
"""
import logging

from flask_login import current_user
from flask_socketio import join_room

from .departamentos import Departamento, PAPEL_ADMIN
from .extensions import socketio
from .sinais import (atividade_criada, atividade_avancada, atividade_retornada,
                     reimpressao_criada, reimpressao_atualizada)

logger = logging.getLogger(__name__)


@socketio.on('connect')
def ao_conectar(auth=None):
    if not current_user.is_authenticated:
        return False
    join_room(current_user.role)
    logger.debug(f"Socket de '{current_user.username}' entrou na sala '{current_user.role}'")


def _sala(departamento):
    return getattr(departamento, 'value', departamento)


def enviar(evento, dados, *departamentos):
    """Emite o evento para as salas dos setores indicados e para a sala dos admins."""
    salas = list(dict.fromkeys([_sala(d) for d in departamentos if d is not None] + [PAPEL_ADMIN]))
    for sala in salas:
        try:
            socketio.emit(evento, dados, to=sala)
        except Exception as e:
            logger.warning(f"AVISO: envio em tempo real de '{evento}' para '{sala}' falhou: {e}")
    return salas


def _dados_atividade(atividade, **extra):
    dados = {'atividade_id': atividade.id, 'titulo': atividade.titulo}
    dados.update({k: _sala(v) for k, v in extra.items()})
    return dados

# --- RECEPTORES DOS SINAIS ---

@atividade_criada.connect
def _push_atividade_criada(app, atividade, criado_por, **extra):
    primeiro = Departamento.primeiro()
    enviar('new_activity', _dados_atividade(atividade, departamento=primeiro), primeiro)


@atividade_avancada.connect
def _push_atividade_avancada(app, atividade, departamento, proximo, concluido_por, **extra):
    enviar('activity_completed',
           _dados_atividade(atividade, departamento=departamento, proximo=proximo, concluido_por=concluido_por),
           departamento)
    if proximo is not None:
        enviar('new_activity', _dados_atividade(atividade, departamento=proximo), proximo)


@atividade_retornada.connect
def _push_atividade_retornada(app, atividade, departamento, anterior, retornado_por, **extra):
    dados = _dados_atividade(atividade, departamento=departamento, anterior=anterior, retornado_por=retornado_por)
    enviar('activity_returned', dados, anterior)
    enviar('activity_returned_update', dados, departamento)


@reimpressao_criada.connect
def _push_reimpressao_criada(app, solicitacao, **extra):
    enviar('new_reprint_request',
           {'id': solicitacao.id, 'atividade_id': solicitacao.atividade_id,
            'departamento_origem': solicitacao.departamento_origem,
            'departamento_destino': solicitacao.departamento_destino},
           solicitacao.departamento_destino)


@reimpressao_atualizada.connect
def _push_reimpressao_atualizada(app, solicitacao, status_anterior, **extra):
    enviar('reprint_request_update',
           {'id': solicitacao.id, 'atividade_id': solicitacao.atividade_id,
            'status': solicitacao.status, 'status_anterior': status_anterior},
           solicitacao.departamento_origem, solicitacao.departamento_destino)
