# producao_app/reimpressao.py
"""
Solicitações de reimpressão: um setor (normalmente a batida) pede ao outro
(normalmente a impressão) que refaça peças com defeito. É uma troca simples
entre duas partes, sem sequência de setores e sem retorno: 'completed' e
'rejected' são finais.
"""
import logging

from flask import current_app

from . import armazenamento
from .armazenamento import transacao
from .departamentos import Departamento
from .erros import ErroValidacao, ErroAutorizacao, ErroTransicaoInvalida
from .models import (PRIORIDADES, STATUS_REIMPRESSAO, REIMPRESSAO_PENDENTE, REIMPRESSAO_EM_ANDAMENTO,
                     REIMPRESSAO_CONCLUIDA, REIMPRESSAO_REJEITADA)
from .sinais import reimpressao_criada, reimpressao_atualizada
from .utils import registrar_log

logger = logging.getLogger(__name__)

ORIGEM_PADRAO = Departamento.BATIDA
DESTINO_PADRAO = Departamento.IMPRESSAO

TRANSICOES = {
    REIMPRESSAO_PENDENTE: (REIMPRESSAO_EM_ANDAMENTO, REIMPRESSAO_CONCLUIDA, REIMPRESSAO_REJEITADA),
    REIMPRESSAO_EM_ANDAMENTO: (REIMPRESSAO_CONCLUIDA, REIMPRESSAO_REJEITADA),
    REIMPRESSAO_CONCLUIDA: (),
    REIMPRESSAO_REJEITADA: (),
}


def _validar_status(status, permitir_vazio=False):
    if permitir_vazio and not status:
        return None
    if status not in STATUS_REIMPRESSAO:
        raise ErroValidacao(f"Status de reimpressão inválido: '{status}'.")
    return status


def criar_solicitacao(atividade_id, dados, usuario):
    motivo = (dados.get('motivo') or '').strip()
    if not motivo:
        raise ErroValidacao('O motivo da reimpressão é obrigatório.')
    try:
        quantidade = int(dados.get('quantidade', 1))
    except (TypeError, ValueError):
        raise ErroValidacao('A quantidade deve ser um número inteiro.')
    if quantidade < 1:
        raise ErroValidacao('A quantidade deve ser maior que zero.')
    prioridade = dados.get('prioridade') or 'normal'
    if prioridade not in PRIORIDADES:
        raise ErroValidacao(f"Prioridade inválida: '{prioridade}'.")

    origem = Departamento.de(dados.get('departamento_origem') or ORIGEM_PADRAO)
    destino = Departamento.de(dados.get('departamento_destino') or DESTINO_PADRAO)
    if origem == destino:
        raise ErroValidacao('O setor solicitante e o setor de destino devem ser diferentes.')
    if not usuario.eh_admin and usuario.role != origem.value:
        raise ErroAutorizacao('Somente o setor solicitante pode criar esta reimpressão.')

    solicitado_por = (dados.get('solicitado_por') or '').strip() or usuario.nome
    with transacao():
        atividade = armazenamento.get_atividade_ou_erro(atividade_id)
        solicitacao = armazenamento.criar_solicitacao_reimpressao(
            atividade, solicitado_por, motivo, origem, destino,
            detalhes=dados.get('detalhes'), quantidade=quantidade, prioridade=prioridade
        )
        registrar_log(atividade.id, solicitado_por, 'REIMPRESSAO_SOLICITADA', detalhes={
            'solicitacao_id': solicitacao.id, 'motivo': motivo, 'quantidade': quantidade,
            'de': origem.value, 'para': destino.value
        })
    logger.info(f"Reimpressão {solicitacao.id} da atividade {atividade_id} solicitada por {solicitado_por} "
                f"({origem} -> {destino})")
    reimpressao_criada.send(current_app._get_current_object(), solicitacao=solicitacao)
    return solicitacao


def atualizar_status(solicitacao_id, novo_status, usuario, processado_por=None, observacoes=None):
    """
    Muda o status se a transição for permitida a partir do status atual. A
    troca é condicional no banco, então duas respostas simultâneas para a
    mesma solicitação não passam as duas.
    """
    novo_status = _validar_status(novo_status)
    solicitacao = armazenamento.get_reimpressao_ou_erro(solicitacao_id)
    if not usuario.eh_admin and usuario.role != solicitacao.departamento_destino:
        raise ErroAutorizacao('Somente o setor de destino pode atualizar esta reimpressão.')

    status_anterior = solicitacao.status
    if novo_status not in TRANSICOES.get(status_anterior, ()):
        raise ErroTransicaoInvalida(
            f"Não é possível mudar a reimpressão de '{status_anterior}' para '{novo_status}'."
        )

    processado_por = (processado_por or '').strip() or usuario.nome
    with transacao():
        alteradas = armazenamento.atualizar_status_reimpressao(
            solicitacao_id, novo_status, (status_anterior,),
            processado_por=processado_por, observacoes_resposta=observacoes
        )
        if alteradas != 1:
            raise ErroTransicaoInvalida('A reimpressão foi alterada por outra pessoa. Atualize a tela.')
        solicitacao = armazenamento.recarregar_reimpressao(solicitacao_id)
        registrar_log(solicitacao.atividade_id, processado_por, 'REIMPRESSAO_ATUALIZADA', detalhes={
            'solicitacao_id': solicitacao_id, 'de': status_anterior, 'para': novo_status
        })

    logger.info(f"Reimpressão {solicitacao_id}: '{status_anterior}' -> '{novo_status}' por {processado_por}")
    reimpressao_atualizada.send(current_app._get_current_object(), solicitacao=solicitacao,
                                status_anterior=status_anterior)
    return solicitacao


def listar_para_departamento(departamento, status=None):
    return armazenamento.get_reimpressoes_para_departamento(departamento, _validar_status(status, True))


def listar_do_departamento(departamento, status=None):
    return armazenamento.get_reimpressoes_do_departamento(departamento, _validar_status(status, True))


def listar_por_atividade(atividade_id):
    armazenamento.get_atividade_ou_erro(atividade_id)
    return armazenamento.get_reimpressoes_por_atividade(atividade_id)


def listar_por_status(status=REIMPRESSAO_PENDENTE):
    return armazenamento.get_reimpressoes_por_status(_validar_status(status))
