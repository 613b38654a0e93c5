import pytest

from producao_app import armazenamento
from producao_app.armazenamento import transacao
from producao_app.departamentos import Departamento
from producao_app.erros import ErroValidacao, ErroNaoEncontrado, ErroTransicaoInvalida
from producao_app.models import Usuario, ProgressoAtividade, Notificacao, Log, PROGRESSO_CONCLUIDO
from producao_app.utils import get_logs


def test_transacao_desfaz_tudo_em_caso_de_erro(ctx):
    with pytest.raises(ErroValidacao):
        with transacao():
            armazenamento.criar_usuario('temporario', 'senha123', 'Temporário', 'batida')
            raise ErroValidacao('falhou no meio')

    assert armazenamento.get_usuario_por_username('temporario') is None


def test_usuario_duplicado(ctx, usuarios):
    with pytest.raises(ErroValidacao):
        with transacao():
            armazenamento.criar_usuario('batida', 'outra', 'Outra Batida', 'batida')
    assert Usuario.query.filter_by(username='batida').count() == 1


def test_progresso_duplicado_vira_transicao_invalida(ctx, novo_pedido):
    atividade_id = novo_pedido()
    with pytest.raises(ErroTransicaoInvalida):
        with transacao():
            armazenamento.criar_progresso(atividade_id, Departamento.GABARITO)
    assert ProgressoAtividade.query.filter_by(atividade_id=atividade_id).count() == 1


def test_concluir_progresso_inexistente(ctx, novo_pedido):
    atividade_id = novo_pedido()
    with pytest.raises(ErroNaoEncontrado):
        armazenamento.concluir_progresso(atividade_id, Departamento.COSTURA, 'Ana')


def test_concluir_progresso_ja_concluido(ctx, novo_pedido):
    atividade_id = novo_pedido()
    with transacao():
        armazenamento.concluir_progresso(atividade_id, Departamento.GABARITO, 'Ana')

    with pytest.raises(ErroTransicaoInvalida):
        armazenamento.concluir_progresso(atividade_id, Departamento.GABARITO, 'Bruno')

    progresso = armazenamento.get_progresso(atividade_id, Departamento.GABARITO)
    assert progresso.status == PROGRESSO_CONCLUIDO
    assert progresso.concluido_por == 'Ana'


def test_ordem_de_exibicao_por_prazo_com_nulos_no_final(ctx, novo_pedido):
    sem_prazo = novo_pedido(titulo='Sem prazo')
    prazo_longo = novo_pedido(titulo='Prazo longo', prazo='2030-01-10')
    prazo_curto = novo_pedido(titulo='Prazo curto', prazo='2030-01-05')
    sem_prazo_2 = novo_pedido(titulo='Sem prazo 2')

    ids = [a.id for a in armazenamento.get_atividades_por_departamento(Departamento.GABARITO)]
    assert ids == [prazo_curto, prazo_longo, sem_prazo, sem_prazo_2]
    # Mesma ordem em consultas repetidas
    assert ids == [a.id for a in armazenamento.get_atividades_por_departamento(Departamento.GABARITO)]


def test_excluir_pedido_remove_progresso_e_notificacoes(ctx, novo_pedido):
    atividade_id = novo_pedido()
    assert Notificacao.query.filter_by(atividade_id=atividade_id).count() == 1

    with transacao():
        armazenamento.deletar_atividade(atividade_id)

    assert armazenamento.get_atividade(atividade_id) is None
    assert ProgressoAtividade.query.filter_by(atividade_id=atividade_id).count() == 0
    assert Notificacao.query.filter_by(atividade_id=atividade_id).count() == 0
    # O histórico é preservado
    assert Log.query.filter_by(atividade_id=atividade_id).count() >= 1


def test_nao_exclui_usuario_que_criou_pedidos(ctx, usuarios, novo_pedido):
    novo_pedido()
    with pytest.raises(ErroValidacao):
        with transacao():
            armazenamento.deletar_usuario(usuarios['admin'])
    assert armazenamento.get_usuario(usuarios['admin']) is not None


def test_marcar_notificacoes(ctx, usuarios, novo_pedido):
    novo_pedido()
    novo_pedido()
    user_id = usuarios['gabarito']
    notificacoes = armazenamento.get_notificacoes_usuario(user_id)
    assert len(notificacoes) == 2

    with transacao():
        armazenamento.marcar_como_lida(notificacoes[0].id)
    assert Notificacao.query.filter_by(user_id=user_id, lida=False).count() == 1

    with transacao():
        armazenamento.marcar_todas_como_lidas(user_id)
    assert Notificacao.query.filter_by(user_id=user_id, lida=False).count() == 0

    with pytest.raises(ErroNaoEncontrado):
        armazenamento.marcar_como_lida(99999)


def test_historico_do_pedido(ctx, novo_pedido):
    atividade_id = novo_pedido()
    logs = get_logs(atividade_id)
    assert [log.acao for log in logs] == ['CRIACAO']
    assert logs[0].detalhes['quantidade'] == 10
