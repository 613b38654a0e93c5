# producao_app/armazenamento.py
"""
Acesso ao banco para usuários, pedidos, progresso por setor, notificações e
solicitações de reimpressão.

As funções daqui adicionam e alteram objetos na sessão mas não fazem commit:
quem chama agrupa as operações dentro de `transacao()`, de modo que uma
transição do fluxo grava tudo ou nada.
"""
import logging
from contextlib import contextmanager

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from .departamentos import Departamento, SEQUENCIA
from .erros import (ErroProducao, ErroValidacao, ErroNaoEncontrado,
                    ErroTransicaoInvalida, ErroArmazenamentoTransitorio)
from .extensions import db, agora_iso
from .models import (Usuario, Atividade, ProgressoAtividade, Notificacao, SolicitacaoReimpressao,
                     STATUS_EM_ANDAMENTO, STATUS_CONCLUIDA, PROGRESSO_PENDENTE, PROGRESSO_CONCLUIDO)

logger = logging.getLogger(__name__)


@contextmanager
def transacao():
    """Executa o bloco como uma única transação: commit no final, rollback em qualquer erro."""
    try:
        yield db.session
        db.session.commit()
    except ErroProducao:
        db.session.rollback()
        raise
    except OperationalError as e:
        db.session.rollback()
        logger.error(f"ERRO de conexão/timeout ao gravar no banco: {e}")
        raise ErroArmazenamentoTransitorio(
            'Não foi possível confirmar a gravação no banco de dados. Verifique e tente novamente.'
        ) from e
    except IntegrityError as e:
        db.session.rollback()
        logger.warning(f"Conflito de integridade ao gravar: {e}")
        raise ErroTransicaoInvalida('A operação conflita com uma alteração simultânea. Atualize a tela.') from e
    except SQLAlchemyError:
        db.session.rollback()
        raise


def _ordem_departamento(progresso):
    try:
        return Departamento(progresso.departamento).indice
    except ValueError:
        return len(SEQUENCIA)

# --- USUÁRIOS ---

def get_usuario(user_id):
    return db.session.get(Usuario, user_id)


def get_usuario_ou_erro(user_id):
    usuario = get_usuario(user_id)
    if not usuario:
        raise ErroNaoEncontrado('Usuário não encontrado.')
    return usuario


def get_usuario_por_username(username):
    return Usuario.query.filter_by(username=username).first()


def listar_usuarios():
    return Usuario.query.order_by(Usuario.nome.asc()).all()


def get_usuarios_por_papel(role):
    return Usuario.query.filter_by(role=role).order_by(Usuario.id.asc()).all()


def criar_usuario(username, password, nome, role):
    if get_usuario_por_username(username):
        raise ErroValidacao(f"O usuário '{username}' já existe.")
    usuario = Usuario(username=username, nome=nome, role=role)
    usuario.set_password(password)
    db.session.add(usuario)
    db.session.flush()
    return usuario


def atualizar_usuario(user_id, dados):
    usuario = get_usuario_ou_erro(user_id)
    novo_username = dados.get('username')
    if novo_username and novo_username != usuario.username and get_usuario_por_username(novo_username):
        raise ErroValidacao(f"O usuário '{novo_username}' já existe.")
    usuario.username = novo_username or usuario.username
    usuario.nome = dados.get('nome', usuario.nome)
    usuario.role = dados.get('role', usuario.role)
    return usuario


def deletar_usuario(user_id):
    usuario = get_usuario_ou_erro(user_id)
    if Atividade.query.filter_by(criado_por=user_id).first():
        raise ErroValidacao('Este usuário criou pedidos e não pode ser excluído.')
    db.session.delete(usuario)

# --- ATIVIDADES (PEDIDOS) ---

def criar_atividade(dados, criado_por):
    """
    Cria o pedido com status 'in_progress'. Não cria o progresso do primeiro
    setor: isso é feito pelo fluxo, na mesma transação.
    """
    atividade = Atividade(
        titulo=dados['titulo'],
        descricao=dados.get('descricao') or '',
        imagem=dados.get('imagem') or '',
        imagens_adicionais=list(dados.get('imagens_adicionais') or []),
        quantidade=dados['quantidade'],
        nome_cliente=dados.get('nome_cliente'),
        prioridade=dados.get('prioridade'),
        prazo=dados.get('prazo'),
        observacoes=dados.get('observacoes'),
        criado_por=criado_por,
        data_criacao=agora_iso(),
        status=STATUS_EM_ANDAMENTO
    )
    db.session.add(atividade)
    db.session.flush()
    return atividade


def get_atividade(atividade_id):
    return db.session.get(Atividade, atividade_id)


def get_atividade_ou_erro(atividade_id):
    atividade = get_atividade(atividade_id)
    if not atividade:
        raise ErroNaoEncontrado('Atividade não encontrada.')
    return atividade


def listar_atividades():
    return Atividade.query.order_by(Atividade.data_criacao.desc(), Atividade.id.desc()).all()


def _ordem_de_exibicao(query):
    # Prazo mais próximo primeiro, sem prazo no final; empate pela criação mais antiga
    return query.order_by(
        Atividade.prazo.is_(None), Atividade.prazo.asc(),
        Atividade.data_criacao.asc(), Atividade.id.asc()
    )


def get_pendentes_por_departamento(departamento, limite=None):
    """Pares (atividade, progresso) com progresso pendente no setor, na ordem de exibição."""
    departamento = Departamento.de(departamento)
    query = db.session.query(Atividade, ProgressoAtividade)\
        .join(ProgressoAtividade, ProgressoAtividade.atividade_id == Atividade.id)\
        .filter(ProgressoAtividade.departamento == departamento.value,
                ProgressoAtividade.status == PROGRESSO_PENDENTE)
    query = _ordem_de_exibicao(query)
    if limite:
        query = query.limit(limite)
    return query.all()


def get_atividades_por_departamento(departamento, limite=None):
    return [atividade for atividade, _ in get_pendentes_por_departamento(departamento, limite)]


def atualizar_atividade(atividade_id, dados):
    """Atualiza os campos editáveis, preservando criador, data de criação e status."""
    atividade = get_atividade_ou_erro(atividade_id)
    for campo in ('titulo', 'descricao', 'imagem', 'quantidade', 'nome_cliente',
                  'prioridade', 'prazo', 'observacoes'):
        if campo in dados:
            setattr(atividade, campo, dados[campo])
    if 'imagens_adicionais' in dados:
        atividade.imagens_adicionais = list(dados['imagens_adicionais'] or [])
    return atividade


def atualizar_status_atividade(atividade_id, status):
    atividade = get_atividade_ou_erro(atividade_id)
    atividade.status = status
    return atividade


def deletar_atividade(atividade_id):
    """Exclui o pedido junto com seus progressos, notificações e reimpressões."""
    atividade = get_atividade_ou_erro(atividade_id)
    departamentos = [p.departamento for p in atividade.progressos]
    db.session.delete(atividade)
    return departamentos


def estatisticas_atividades():
    contagens = dict(
        db.session.query(Atividade.status, func.count(Atividade.id)).group_by(Atividade.status).all()
    )
    return {
        'total': sum(contagens.values()),
        'em_andamento': contagens.get(STATUS_EM_ANDAMENTO, 0),
        'concluidas': contagens.get(STATUS_CONCLUIDA, 0)
    }


def listar_atividades_por_status(status, limite=None):
    query = Atividade.query.filter_by(status=status)
    query = _ordem_de_exibicao(query)
    if limite:
        query = query.limit(limite)
    return query.all()

# --- PROGRESSO POR SETOR ---

def criar_progresso(atividade_id, departamento, status=PROGRESSO_PENDENTE):
    progresso = ProgressoAtividade(
        atividade_id=atividade_id,
        departamento=Departamento.de(departamento).value,
        status=status
    )
    db.session.add(progresso)
    db.session.flush()
    return progresso


def get_progressos(atividade_id):
    """Progressos do pedido na ordem dos setores."""
    progressos = ProgressoAtividade.query.filter_by(atividade_id=atividade_id).all()
    return sorted(progressos, key=_ordem_departamento)


def get_progresso(atividade_id, departamento):
    return ProgressoAtividade.query.filter_by(
        atividade_id=atividade_id, departamento=Departamento.de(departamento).value
    ).first()


def _recarregar_progresso(atividade_id, departamento):
    stmt = select(ProgressoAtividade).where(
        ProgressoAtividade.atividade_id == atividade_id,
        ProgressoAtividade.departamento == departamento.value
    ).execution_options(populate_existing=True)
    return db.session.execute(stmt).scalar_one()


def _fechar_se_pendente(atividade_id, departamento, concluido_por, notas):
    """
    Marca o progresso como concluído somente se ele ainda estiver pendente.
    Retorna quantas linhas mudaram (0 ou 1); duas chamadas simultâneas no
    mesmo progresso resultam em exatamente uma alteração.
    """
    resultado = db.session.execute(
        update(ProgressoAtividade)
        .where(ProgressoAtividade.atividade_id == atividade_id,
               ProgressoAtividade.departamento == departamento.value,
               ProgressoAtividade.status == PROGRESSO_PENDENTE)
        .values(status=PROGRESSO_CONCLUIDO,
                concluido_por=concluido_por,
                data_conclusao=agora_iso(),
                observacoes=notas or None)
        .execution_options(synchronize_session=False)
    )
    return resultado.rowcount


def concluir_progresso(atividade_id, departamento, concluido_por, notas=None):
    departamento = Departamento.de(departamento)
    if _fechar_se_pendente(atividade_id, departamento, concluido_por, notas) != 1:
        if get_progresso(atividade_id, departamento) is None:
            raise ErroNaoEncontrado('Progresso da atividade não encontrado para este setor.')
        raise ErroTransicaoInvalida('Esta atividade não está disponível para este setor ou já foi concluída.')
    return _recarregar_progresso(atividade_id, departamento)


def abrir_progresso(atividade_id, departamento, retornado_por=None, notas=None):
    """
    Deixa o progresso do setor como pendente, criando a linha se não existir.
    Uma linha antiga (de um ciclo anterior a um retorno) tem conclusão e
    marcas de retorno limpas.
    """
    departamento = Departamento.de(departamento)
    progresso = get_progresso(atividade_id, departamento)
    if progresso is None:
        progresso = ProgressoAtividade(atividade_id=atividade_id, departamento=departamento.value)
        db.session.add(progresso)
    progresso.status = PROGRESSO_PENDENTE
    progresso.concluido_por = None
    progresso.data_conclusao = None
    progresso.observacoes = notas or None
    progresso.retornado_por = retornado_por
    progresso.data_retorno = agora_iso() if retornado_por else None
    db.session.flush()
    return progresso


def retornar_para_departamento_anterior(atividade_id, departamento_atual, retornado_por, notas=None):
    """
    Fecha o progresso do setor atual (registrando quem retornou como
    responsável) e reabre o do setor anterior marcado como retorno.
    Retorna (progresso_anterior, progresso_atual).
    """
    departamento_atual = Departamento.de(departamento_atual)
    anterior = departamento_atual.anterior()
    if anterior is None:
        raise ErroTransicaoInvalida(
            'Não é possível retornar esta atividade, pois não há departamento anterior.'
        )
    if get_progresso(atividade_id, departamento_atual) is None:
        raise ErroTransicaoInvalida('Não há progresso desta atividade no setor informado.')

    if _fechar_se_pendente(atividade_id, departamento_atual, retornado_por, notas) != 1:
        raise ErroTransicaoInvalida('Esta atividade não está disponível para este setor ou já foi concluída.')
    progresso_atual = _recarregar_progresso(atividade_id, departamento_atual)
    progresso_anterior = abrir_progresso(atividade_id, anterior, retornado_por=retornado_por, notas=notas)
    return progresso_anterior, progresso_atual


def get_notas_do_setor(atividade_ids, departamento):
    """Mapa atividade_id -> progresso do setor, para enriquecer a fila do setor seguinte."""
    if not atividade_ids or departamento is None:
        return {}
    progressos = ProgressoAtividade.query.filter(
        ProgressoAtividade.atividade_id.in_(atividade_ids),
        ProgressoAtividade.departamento == Departamento.de(departamento).value
    ).all()
    return {p.atividade_id: p for p in progressos}


def contar_progressos(departamento, status):
    return db.session.query(func.count(ProgressoAtividade.id)).filter(
        ProgressoAtividade.departamento == Departamento.de(departamento).value,
        ProgressoAtividade.status == status
    ).scalar() or 0


def contar_pendentes_por_departamento():
    linhas = db.session.query(ProgressoAtividade.departamento, func.count(ProgressoAtividade.id))\
        .filter(ProgressoAtividade.status == PROGRESSO_PENDENTE)\
        .group_by(ProgressoAtividade.departamento).all()
    return dict(linhas)


def get_concluidas_por_departamento(departamento):
    return db.session.query(Atividade, ProgressoAtividade)\
        .join(ProgressoAtividade, ProgressoAtividade.atividade_id == Atividade.id)\
        .filter(ProgressoAtividade.departamento == Departamento.de(departamento).value,
                ProgressoAtividade.status == PROGRESSO_CONCLUIDO)\
        .order_by(ProgressoAtividade.data_conclusao.desc(), Atividade.id.desc()).all()


def get_todos_progressos():
    return ProgressoAtividade.query.all()

# --- NOTIFICAÇÕES ---

def criar_notificacao(user_id, mensagem, atividade_id=None, departamento=None, tipo=None):
    notificacao = Notificacao(
        user_id=user_id,
        atividade_id=atividade_id,
        departamento=departamento.value if isinstance(departamento, Departamento) else departamento,
        tipo=tipo,
        mensagem=mensagem,
        lida=False,
        data_criacao=agora_iso()
    )
    db.session.add(notificacao)
    return notificacao


def get_notificacao(notificacao_id):
    return db.session.get(Notificacao, notificacao_id)


def get_notificacoes_usuario(user_id, limite=None):
    query = Notificacao.query.filter_by(user_id=user_id)\
        .order_by(Notificacao.data_criacao.desc(), Notificacao.id.desc())
    if limite:
        query = query.limit(limite)
    return query.all()


def marcar_como_lida(notificacao_id):
    notificacao = get_notificacao(notificacao_id)
    if not notificacao:
        raise ErroNaoEncontrado('Notificação não encontrada.')
    notificacao.lida = True
    return notificacao


def marcar_todas_como_lidas(user_id):
    return Notificacao.query.filter_by(user_id=user_id, lida=False).update({'lida': True})


def limpar_notificacoes(user_id):
    return Notificacao.query.filter_by(user_id=user_id).delete()

# --- SOLICITAÇÕES DE REIMPRESSÃO ---

def criar_solicitacao_reimpressao(atividade, solicitado_por, motivo, departamento_origem,
                                  departamento_destino, detalhes=None, quantidade=1, prioridade='normal'):
    solicitacao = SolicitacaoReimpressao(
        atividade_id=atividade.id,
        titulo_atividade=atividade.titulo,
        imagem_atividade=atividade.imagem,
        solicitado_por=solicitado_por,
        motivo=motivo,
        detalhes=detalhes or '',
        quantidade=quantidade,
        prioridade=prioridade,
        data_solicitacao=agora_iso(),
        departamento_origem=Departamento.de(departamento_origem).value,
        departamento_destino=Departamento.de(departamento_destino).value
    )
    db.session.add(solicitacao)
    db.session.flush()
    return solicitacao


def get_solicitacao_reimpressao(solicitacao_id):
    return db.session.get(SolicitacaoReimpressao, solicitacao_id)


def get_reimpressao_ou_erro(solicitacao_id):
    solicitacao = get_solicitacao_reimpressao(solicitacao_id)
    if not solicitacao:
        raise ErroNaoEncontrado('Solicitação de reimpressão não encontrada.')
    return solicitacao


def _ordem_reimpressoes(query):
    return query.order_by(SolicitacaoReimpressao.data_solicitacao.desc(), SolicitacaoReimpressao.id.desc())


def get_reimpressoes_por_atividade(atividade_id):
    return _ordem_reimpressoes(SolicitacaoReimpressao.query.filter_by(atividade_id=atividade_id)).all()


def get_reimpressoes_por_status(status):
    return _ordem_reimpressoes(SolicitacaoReimpressao.query.filter_by(status=status)).all()


def get_reimpressoes_para_departamento(departamento, status=None):
    query = SolicitacaoReimpressao.query.filter_by(departamento_destino=Departamento.de(departamento).value)
    if status:
        query = query.filter_by(status=status)
    return _ordem_reimpressoes(query).all()


def get_reimpressoes_do_departamento(departamento, status=None):
    query = SolicitacaoReimpressao.query.filter_by(departamento_origem=Departamento.de(departamento).value)
    if status:
        query = query.filter_by(status=status)
    return _ordem_reimpressoes(query).all()


def atualizar_status_reimpressao(solicitacao_id, status, status_permitidos, processado_por=None,
                                 observacoes_resposta=None):
    """
    Altera o status somente se o status atual estiver em `status_permitidos`.
    Retorna o número de linhas alteradas.
    """
    resultado = db.session.execute(
        update(SolicitacaoReimpressao)
        .where(SolicitacaoReimpressao.id == solicitacao_id,
               SolicitacaoReimpressao.status.in_(status_permitidos))
        .values(status=status,
                processado_por=processado_por,
                data_processamento=agora_iso(),
                observacoes_resposta=observacoes_resposta)
        .execution_options(synchronize_session=False)
    )
    return resultado.rowcount


def recarregar_reimpressao(solicitacao_id):
    stmt = select(SolicitacaoReimpressao).where(SolicitacaoReimpressao.id == solicitacao_id)\
        .execution_options(populate_existing=True)
    return db.session.execute(stmt).scalar_one()
