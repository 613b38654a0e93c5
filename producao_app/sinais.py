# producao_app/sinais.py
"""
Eventos do fluxo de produção.

O fluxo só emite os sinais depois que a transação foi confirmada. As
notificações gravadas no banco e o envio em tempo real ficam nos receptores,
então o fluxo não conhece nenhum dos dois.

Sinais:
    atividade_criada: pedido criado, aguardando o primeiro setor
        Args: atividade, criado_por
    atividade_avancada: setor concluiu o pedido
        Args: atividade, departamento, proximo (None no último setor), concluido_por
    atividade_retornada: pedido devolvido ao setor anterior
        Args: atividade, departamento, anterior, retornado_por, notas
    reimpressao_criada: nova solicitação de reimpressão
        Args: solicitacao
    reimpressao_atualizada: status de uma solicitação mudou
        Args: solicitacao, status_anterior
"""
from blinker import Namespace

_sinais = Namespace()

atividade_criada = _sinais.signal('atividade-criada')
atividade_avancada = _sinais.signal('atividade-avancada')
atividade_retornada = _sinais.signal('atividade-retornada')
reimpressao_criada = _sinais.signal('reimpressao-criada')
reimpressao_atualizada = _sinais.signal('reimpressao-atualizada')

__all__ = [
    'atividade_criada', 'atividade_avancada', 'atividade_retornada',
    'reimpressao_criada', 'reimpressao_atualizada',
]
