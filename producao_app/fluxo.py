# producao_app/fluxo.py
"""
Máquina de estados dos pedidos ao longo dos setores.

Cada pedido tem no máximo uma linha de progresso por setor, e em qualquer
momento no máximo uma delas está pendente: é o setor onde o pedido está.
`concluir` fecha essa linha e abre a do setor seguinte (ou encerra o pedido no
último setor); `retornar_para_anterior` fecha a linha atual e reabre a do setor
anterior marcada como retorno. As duas alterações acontecem numa única
transação, a linha só é fechada se ainda estiver pendente, e o cache dos setores
afetados é invalidado logo depois do commit.
"""
import logging
from collections import defaultdict
from datetime import datetime
from functools import partial
from math import ceil

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from . import armazenamento
from .armazenamento import transacao
from .departamentos import Departamento, SEQUENCIA, CONCLUIDO
from .erros import ErroValidacao
from .extensions import db, cache_progresso, tz_brasilia
from .models import (STATUS_CONCLUIDA, STATUS_EM_ANDAMENTO, PROGRESSO_PENDENTE,
                     PROGRESSO_CONCLUIDO, PRIORIDADES)
from .serializers import serialize_atividade, serialize_progresso
from .sinais import atividade_criada, atividade_avancada, atividade_retornada
from .utils import registrar_log

logger = logging.getLogger(__name__)

PREFIXO_PENDENTES = 'pendentes:'
PREFIXO_PAINEL = 'painel:'


def chave_pendentes(departamento):
    return PREFIXO_PENDENTES + Departamento.de(departamento).value


def _invalidar(*departamentos):
    chaves = [chave_pendentes(d) for d in departamentos if d is not None]
    cache_progresso.invalidar(*chaves)
    cache_progresso.invalidar_prefixo(PREFIXO_PAINEL)


def _invalidar_todos():
    _invalidar(*SEQUENCIA)


def _app():
    return current_app._get_current_object()


def _leitura(carregador, *args):
    # Consulta que falha deixa a sessão inutilizável até o rollback
    try:
        return carregador(*args)
    except SQLAlchemyError:
        db.session.rollback()
        raise

# --- VALIDAÇÃO ---

def _normalizar_prazo(valor):
    # Todos os prazos gravados no fuso de Brasília, para a ordenação por texto valer
    if valor in (None, ''):
        return None
    try:
        texto = str(valor).strip().replace('Z', '+00:00')
        prazo = datetime.fromisoformat(texto)
    except ValueError:
        raise ErroValidacao(f"Prazo inválido: '{valor}'. Use o formato AAAA-MM-DD.")
    if prazo.tzinfo is None:
        prazo = prazo.replace(tzinfo=tz_brasilia)
    return prazo.astimezone(tz_brasilia).isoformat()


def validar_dados_atividade(dados, parcial=False):
    """
    Valida e normaliza os campos de um pedido. Com `parcial=True` (edição)
    somente os campos presentes são verificados.
    """
    if not isinstance(dados, dict):
        raise ErroValidacao('Dados da atividade ausentes.')
    limpos = {}

    if not parcial or 'titulo' in dados:
        titulo = (dados.get('titulo') or '').strip()
        if not titulo:
            raise ErroValidacao('O título é obrigatório.')
        limpos['titulo'] = titulo

    if not parcial or 'quantidade' in dados:
        try:
            quantidade = int(dados.get('quantidade'))
        except (TypeError, ValueError):
            raise ErroValidacao('A quantidade deve ser um número inteiro.')
        if quantidade < 1:
            raise ErroValidacao('A quantidade deve ser maior que zero.')
        limpos['quantidade'] = quantidade

    if 'prioridade' in dados:
        prioridade = dados.get('prioridade') or None
        if prioridade is not None and prioridade not in PRIORIDADES:
            raise ErroValidacao(f"Prioridade inválida: '{prioridade}'.")
        limpos['prioridade'] = prioridade

    if 'prazo' in dados:
        limpos['prazo'] = _normalizar_prazo(dados.get('prazo'))

    if 'imagens_adicionais' in dados:
        imagens = dados.get('imagens_adicionais') or []
        if not isinstance(imagens, list) or not all(isinstance(i, str) for i in imagens):
            raise ErroValidacao('imagens_adicionais deve ser uma lista de endereços.')
        limpos['imagens_adicionais'] = imagens

    for campo in ('descricao', 'imagem', 'nome_cliente', 'observacoes'):
        if campo in dados:
            valor = dados.get(campo)
            limpos[campo] = valor.strip() if isinstance(valor, str) else valor
    return limpos


def _exigir_nome(valor, mensagem):
    nome = (valor or '').strip() if isinstance(valor, str) else ''
    if not nome:
        raise ErroValidacao(mensagem)
    return nome

# --- CRIAÇÃO E EDIÇÃO ---

def criar_atividade(dados, criado_por):
    """Cria o pedido e o progresso pendente no primeiro setor, na mesma transação."""
    dados = validar_dados_atividade(dados)
    primeiro = Departamento.primeiro()
    with transacao():
        atividade = armazenamento.criar_atividade(dados, criado_por.id)
        armazenamento.criar_progresso(atividade.id, primeiro)
        registrar_log(atividade.id, criado_por.nome, 'CRIACAO',
                      detalhes={'titulo': atividade.titulo, 'quantidade': atividade.quantidade})
    _invalidar(primeiro)
    logger.info(f"Atividade {atividade.id} criada por {criado_por.nome}, aguardando '{primeiro}'")
    atividade_criada.send(_app(), atividade=atividade, criado_por=criado_por.nome)
    return atividade


def atualizar_atividade(atividade_id, dados, editor_nome):
    dados = validar_dados_atividade(dados, parcial=True)
    with transacao():
        atividade = armazenamento.atualizar_atividade(atividade_id, dados)
        registrar_log(atividade_id, editor_nome, 'EDICAO', detalhes={'campos': sorted(dados.keys())})
    _invalidar_todos()
    return atividade


def deletar_atividade(atividade_id, editor_nome):
    with transacao():
        atividade = armazenamento.get_atividade_ou_erro(atividade_id)
        titulo = atividade.titulo
        armazenamento.deletar_atividade(atividade_id)
        registrar_log(atividade_id, editor_nome, 'EXCLUSAO', detalhes={'titulo': titulo})
    _invalidar_todos()
    logger.info(f"Atividade {atividade_id} ('{titulo}') excluída por {editor_nome}")

# --- TRANSIÇÕES ---

def concluir(atividade_id, departamento, concluido_por, notas=None):
    """
    Conclui o pedido no setor e o envia para o setor seguinte. No último setor
    o pedido inteiro passa a 'completed' e nenhum progresso novo é criado.
    Chamar de novo para o mesmo setor falha com ErroTransicaoInvalida.
    """
    departamento = Departamento.de(departamento)
    concluido_por = _exigir_nome(concluido_por, 'Nome do funcionário é obrigatório.')
    proximo = departamento.proximo()

    with transacao():
        atividade = armazenamento.get_atividade_ou_erro(atividade_id)
        progresso = armazenamento.concluir_progresso(atividade_id, departamento, concluido_por, notas)
        if proximo is not None:
            armazenamento.abrir_progresso(atividade_id, proximo)
        else:
            atividade.status = STATUS_CONCLUIDA
        registrar_log(atividade_id, concluido_por, 'CONCLUSAO', detalhes={
            'departamento': departamento.value,
            'proximo': proximo.value if proximo else None,
            'notas': notas
        })

    _invalidar(departamento, proximo)
    if proximo is not None:
        logger.info(f"Atividade {atividade_id}: '{departamento}' concluído por {concluido_por}, enviada para '{proximo}'")
    else:
        logger.info(f"Atividade {atividade_id} finalizada por {concluido_por} em '{departamento}'")
    atividade_avancada.send(_app(), atividade=atividade, departamento=departamento,
                            proximo=proximo, concluido_por=concluido_por)
    return progresso


def retornar_para_anterior(atividade_id, departamento, retornado_por, notas=None):
    """
    Devolve o pedido ao setor anterior. Retorna (progresso_anterior, progresso_atual).
    No primeiro setor falha com ErroTransicaoInvalida sem alterar nada.
    """
    departamento = Departamento.de(departamento)
    retornado_por = _exigir_nome(retornado_por, 'Nome de quem está retornando é obrigatório.')
    anterior = departamento.anterior()

    with transacao():
        atividade = armazenamento.get_atividade_ou_erro(atividade_id)
        progresso_anterior, progresso_atual = armazenamento.retornar_para_departamento_anterior(
            atividade_id, departamento, retornado_por, notas
        )
        registrar_log(atividade_id, retornado_por, 'RETORNO', detalhes={
            'de': departamento.value,
            'para': anterior.value,
            'notas': notas
        })

    _invalidar(departamento, anterior)
    logger.info(f"Atividade {atividade_id} retornada de '{departamento}' para '{anterior}' por {retornado_por}")
    atividade_retornada.send(_app(), atividade=atividade, departamento=departamento, anterior=anterior,
                             retornado_por=retornado_por, notas=notas)
    return progresso_anterior, progresso_atual

# --- CONSULTAS DOS SETORES ---

def _serialize_pendente(atividade, progresso, progresso_anterior):
    item = serialize_atividade(atividade)
    item['progresso'] = serialize_progresso(progresso)
    item['retornada'] = progresso.retornado_por is not None
    if progresso_anterior is not None:
        item['departamento_anterior'] = progresso_anterior.departamento
        item['notas_anteriores'] = progresso_anterior.observacoes
        item['concluido_por_anterior'] = progresso_anterior.concluido_por
    else:
        item['departamento_anterior'] = None
        item['notas_anteriores'] = None
        item['concluido_por_anterior'] = None
    return item


def _carregar_pendentes(departamento):
    pares = armazenamento.get_pendentes_por_departamento(departamento)
    anteriores = armazenamento.get_notas_do_setor([a.id for a, _ in pares], departamento.anterior())
    return [_serialize_pendente(a, p, anteriores.get(a.id)) for a, p in pares]


def _carregar_pendentes_reduzido(departamento):
    limite = current_app.config.get('LIMITE_FALLBACK', 20)
    return [serialize_atividade(a) for a in armazenamento.get_atividades_por_departamento(departamento, limite)]


def atividades_pendentes(departamento):
    """
    Fila do setor (ResultadoCache). `parcial=True` indica dados antigos ou
    reduzidos servidos porque o banco não respondeu.
    """
    departamento = Departamento.de(departamento)
    return cache_progresso.obter(
        chave_pendentes(departamento),
        partial(_leitura, _carregar_pendentes, departamento),
        fallback=partial(_leitura, _carregar_pendentes_reduzido, departamento)
    )


def fontes_aquecimento():
    return {chave_pendentes(d): partial(_leitura, _carregar_pendentes, d) for d in SEQUENCIA}


def iniciar_aquecimento(app):
    passo = min(1.0, app.config.get('CACHE_INTERVALO_CURTO', 3))
    return cache_progresso.iniciar_aquecimento(app, fontes_aquecimento, passo=passo)


def estatisticas_departamento(departamento):
    departamento = Departamento.de(departamento)
    return {
        'departamento': departamento.value,
        'pendentes': armazenamento.contar_progressos(departamento, PROGRESSO_PENDENTE),
        'concluidas': armazenamento.contar_progressos(departamento, PROGRESSO_CONCLUIDO)
    }


def concluidas_por_departamento(departamento):
    return [
        {'atividade': serialize_atividade(a), 'progresso': serialize_progresso(p)}
        for a, p in armazenamento.get_concluidas_por_departamento(departamento)
    ]


def progresso_da_atividade(atividade_id):
    armazenamento.get_atividade_ou_erro(atividade_id)
    return [serialize_progresso(p) for p in armazenamento.get_progressos(atividade_id)]

# --- PAINEL DO ADMIN ---

def departamento_atual(atividade, progressos):
    """Primeiro setor com progresso pendente, ou 'concluido' para pedido encerrado."""
    if atividade.status == STATUS_CONCLUIDA:
        return CONCLUIDO
    pendentes = [p.departamento for p in progressos if p.status == PROGRESSO_PENDENTE]
    for departamento in SEQUENCIA:
        if departamento.value in pendentes:
            return departamento.value
    return Departamento.primeiro().value


def _chave_ordenacao(item):
    return (item['prazo'] is None, item['prazo'] or '', item['data_criacao'], item['id'])


def _filtrar(itens, status, busca):
    if status == 'producao':
        itens = [i for i in itens if i['departamento_atual'] != CONCLUIDO]
    elif status == CONCLUIDO:
        itens = [i for i in itens if i['departamento_atual'] == CONCLUIDO]
    if busca:
        termo = busca.lower()
        itens = [
            i for i in itens
            if termo in (i['titulo'] or '').lower()
            or termo in (i['nome_cliente'] or '').lower()
            or termo in (i['descricao'] or '').lower()
        ]
    return itens


def _paginar(itens, pagina, limite, parcial=False):
    return {
        'itens': itens[(pagina - 1) * limite: pagina * limite],
        'total': len(itens),
        'pagina': pagina,
        'total_paginas': ceil(len(itens) / limite) if itens else 0,
        'resultado_parcial': parcial
    }


def _carregar_painel(status, pagina, limite, busca):
    progressos = defaultdict(list)
    for p in armazenamento.get_todos_progressos():
        progressos[p.atividade_id].append(p)

    itens = []
    for atividade in armazenamento.listar_atividades():
        item = serialize_atividade(atividade)
        do_pedido = progressos.get(atividade.id, [])
        item['departamento_atual'] = departamento_atual(atividade, do_pedido)
        item['progresso'] = [serialize_progresso(p) for p in do_pedido]
        itens.append(item)

    itens = sorted(_filtrar(itens, status, busca), key=_chave_ordenacao)
    return _paginar(itens, pagina, limite)


def _carregar_painel_reduzido(status, pagina, limite, busca):
    # Só pedidos em andamento ou só concluídos, sem o progresso de cada um
    status_atividade = STATUS_CONCLUIDA if status == CONCLUIDO else STATUS_EM_ANDAMENTO
    itens = []
    for atividade in armazenamento.listar_atividades_por_status(status_atividade, limite * 2):
        item = serialize_atividade(atividade)
        item['departamento_atual'] = CONCLUIDO if atividade.status == STATUS_CONCLUIDA else None
        itens.append(item)
    return _paginar(_filtrar(itens, None, busca), pagina, limite, parcial=True)


def painel_admin(status='all', pagina=1, limite=30, busca=''):
    if status not in ('all', 'producao', CONCLUIDO):
        raise ErroValidacao(f"Filtro de status inválido: '{status}'.")
    pagina = max(1, int(pagina))
    limite = max(1, min(int(limite), 200))
    busca = (busca or '').strip()

    chave = f'{PREFIXO_PAINEL}{status}:{pagina}:{limite}:{busca.lower()}'
    resultado = cache_progresso.obter(
        chave,
        partial(_leitura, _carregar_painel, status, pagina, limite, busca),
        fallback=partial(_leitura, _carregar_painel_reduzido, status, pagina, limite, busca),
        ttl=current_app.config.get('CACHE_TTL_PAINEL_SEGUNDOS', 30)
    )
    dados = resultado.dados or _paginar([], pagina, limite, parcial=True)
    if resultado.parcial and not dados['resultado_parcial']:
        dados = dict(dados, resultado_parcial=True)
    return dados


def contagem_por_departamento():
    pendentes = armazenamento.contar_pendentes_por_departamento()
    contagem = {d.value: pendentes.get(d.value, 0) for d in SEQUENCIA}
    contagem[CONCLUIDO] = armazenamento.estatisticas_atividades()['concluidas']
    return contagem
