# producao_app/notificacoes.py
"""
Notificações gravadas no banco para cada transição do fluxo.

Os receptores abaixo respondem aos sinais de `sinais.py` depois que a
transição já foi confirmada. Cada usuário do setor afetado recebe a sua própria
linha, com estado de lida/não lida independente.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from . import armazenamento
from .armazenamento import transacao
from .departamentos import Departamento, PAPEL_ADMIN
from .erros import ErroProducao
from .sinais import (atividade_criada, atividade_avancada, atividade_retornada,
                     reimpressao_criada, reimpressao_atualizada)

logger = logging.getLogger(__name__)

TIPO_NOVA_ATIVIDADE = 'nova_atividade'
TIPO_ATIVIDADE_CONCLUIDA = 'atividade_concluida'
TIPO_ATIVIDADE_FINALIZADA = 'atividade_finalizada'
TIPO_ATIVIDADE_RETORNADA = 'atividade_retornada'
TIPO_REIMPRESSAO = 'reimpressao'


def usuarios_do_setor(departamento):
    return armazenamento.get_usuarios_por_papel(getattr(departamento, 'value', departamento))


def usuarios_admin():
    return armazenamento.get_usuarios_por_papel(PAPEL_ADMIN)


def notificar(usuarios, atividade_id, mensagem, departamento=None, tipo=None):
    """
    Cria uma notificação por usuário, numa transação própria. Uma falha aqui é
    registrada no log e não desfaz a transição que a originou.
    Retorna quantas notificações foram gravadas.
    """
    ids = list(dict.fromkeys(u.id for u in usuarios))
    if not ids:
        return 0
    try:
        with transacao():
            for user_id in ids:
                armazenamento.criar_notificacao(user_id, mensagem, atividade_id=atividade_id,
                                                departamento=departamento, tipo=tipo)
    except (ErroProducao, SQLAlchemyError) as e:
        logger.error(f"ERRO ao gravar notificações da atividade {atividade_id} para {len(ids)} usuário(s): {e}")
        return 0
    logger.debug(f"{len(ids)} notificação(ões) '{tipo}' gravadas para a atividade {atividade_id}")
    return len(ids)

# --- RECEPTORES DOS SINAIS ---

@atividade_criada.connect
def _ao_criar_atividade(app, atividade, criado_por, **extra):
    primeiro = Departamento.primeiro()
    notificar(usuarios_do_setor(primeiro), atividade.id,
              f"Nova atividade '{atividade.titulo}' aguardando o setor {primeiro}.",
              departamento=primeiro, tipo=TIPO_NOVA_ATIVIDADE)


@atividade_avancada.connect
def _ao_avancar_atividade(app, atividade, departamento, proximo, concluido_por, **extra):
    if proximo is not None:
        notificar(usuarios_do_setor(proximo), atividade.id,
                  f"A atividade '{atividade.titulo}' foi concluída no setor {departamento} "
                  f"por {concluido_por} e chegou ao seu setor.",
                  departamento=proximo, tipo=TIPO_NOVA_ATIVIDADE)
        notificar(usuarios_admin(), atividade.id,
                  f"'{atividade.titulo}': {departamento} concluído por {concluido_por}, seguiu para {proximo}.",
                  departamento=departamento, tipo=TIPO_ATIVIDADE_CONCLUIDA)
    else:
        notificar(usuarios_admin(), atividade.id,
                  f"A atividade '{atividade.titulo}' foi finalizada no setor {departamento} por {concluido_por}.",
                  departamento=departamento, tipo=TIPO_ATIVIDADE_FINALIZADA)


@atividade_retornada.connect
def _ao_retornar_atividade(app, atividade, departamento, anterior, retornado_por, notas=None, **extra):
    motivo = f" Motivo: {notas}" if notas else ''
    notificar(usuarios_do_setor(anterior), atividade.id,
              f"A atividade '{atividade.titulo}' foi retornada pelo setor {departamento} "
              f"({retornado_por}).{motivo}",
              departamento=anterior, tipo=TIPO_ATIVIDADE_RETORNADA)
    notificar(usuarios_do_setor(departamento), atividade.id,
              f"A atividade '{atividade.titulo}' saiu do seu setor: retornada para {anterior} por {retornado_por}.",
              departamento=departamento, tipo=TIPO_ATIVIDADE_RETORNADA)
    notificar(usuarios_admin(), atividade.id,
              f"'{atividade.titulo}' retornada de {departamento} para {anterior} por {retornado_por}.",
              departamento=departamento, tipo=TIPO_ATIVIDADE_RETORNADA)


@reimpressao_criada.connect
def _ao_criar_reimpressao(app, solicitacao, **extra):
    notificar(usuarios_do_setor(solicitacao.departamento_destino), solicitacao.atividade_id,
              f"Nova solicitação de reimpressão de '{solicitacao.titulo_atividade}' "
              f"({solicitacao.quantidade} un.) enviada por {solicitacao.solicitado_por}.",
              departamento=solicitacao.departamento_destino, tipo=TIPO_REIMPRESSAO)


@reimpressao_atualizada.connect
def _ao_atualizar_reimpressao(app, solicitacao, status_anterior, **extra):
    notificar(usuarios_do_setor(solicitacao.departamento_origem), solicitacao.atividade_id,
              f"A reimpressão de '{solicitacao.titulo_atividade}' mudou para '{solicitacao.status}' "
              f"({solicitacao.processado_por or 'sem responsável'}).",
              departamento=solicitacao.departamento_origem, tipo=TIPO_REIMPRESSAO)
