import pytest

from producao_app import reimpressao
from producao_app.erros import ErroValidacao, ErroAutorizacao, ErroTransicaoInvalida, ErroNaoEncontrado
from producao_app.models import Notificacao


@pytest.fixture
def pedido(novo_pedido):
    return novo_pedido(titulo='Camisa azul', imagem='fotos/camisa.png')


def _solicitar(usuario, atividade_id, **campos):
    dados = {'motivo': 'Estampa falhada', 'quantidade': 3}
    dados.update(campos)
    return reimpressao.criar_solicitacao(atividade_id, dados, usuario)


def test_batida_pede_reimpressao_para_impressao(ctx, usuario, pedido):
    solicitacao = _solicitar(usuario('batida'), pedido)

    assert solicitacao.status == 'pending'
    assert solicitacao.departamento_origem == 'batida'
    assert solicitacao.departamento_destino == 'impressao'
    assert solicitacao.solicitado_por == 'Equipe batida'
    assert solicitacao.titulo_atividade == 'Camisa azul'
    assert solicitacao.imagem_atividade == 'fotos/camisa.png'


def test_criacao_notifica_o_setor_de_destino(ctx, usuarios, usuario, pedido):
    _solicitar(usuario('batida'), pedido)
    notificacoes = Notificacao.query.filter_by(user_id=usuarios['impressao'], tipo='reimpressao').all()
    assert len(notificacoes) == 1


@pytest.mark.parametrize('campos', [
    {'motivo': ''},
    {'quantidade': 0},
    {'prioridade': 'imediata'},
    {'departamento_destino': 'batida'},
    {'departamento_destino': 'corte'},
])
def test_solicitacao_invalida(ctx, usuario, pedido, campos):
    with pytest.raises(ErroValidacao):
        _solicitar(usuario('batida'), pedido, **campos)


def test_so_o_setor_solicitante_pode_pedir(ctx, usuario, pedido):
    with pytest.raises(ErroAutorizacao):
        _solicitar(usuario('costura'), pedido)

    # O admin pode pedir por qualquer setor
    solicitacao = _solicitar(usuario('admin'), pedido, departamento_origem='costura')
    assert solicitacao.departamento_origem == 'costura'


def test_pedido_inexistente(ctx, usuario, usuarios):
    with pytest.raises(ErroNaoEncontrado):
        _solicitar(usuario('batida'), 9999)


def test_fluxo_da_resposta(ctx, usuario, pedido):
    solicitacao = _solicitar(usuario('batida'), pedido)
    impressao = usuario('impressao')

    em_andamento = reimpressao.atualizar_status(solicitacao.id, 'in_progress', impressao)
    assert em_andamento.status == 'in_progress'

    concluida = reimpressao.atualizar_status(solicitacao.id, 'completed', impressao,
                                             processado_por='Bia', observacoes='Refeito')
    assert concluida.status == 'completed'
    assert concluida.processado_por == 'Bia'
    assert concluida.observacoes_resposta == 'Refeito'
    assert concluida.data_processamento is not None


@pytest.mark.parametrize('final', ['completed', 'rejected'])
def test_status_final_nao_muda_mais(ctx, usuario, pedido, final):
    solicitacao = _solicitar(usuario('batida'), pedido)
    impressao = usuario('impressao')
    reimpressao.atualizar_status(solicitacao.id, final, impressao)

    for novo in ('pending', 'in_progress', 'completed', 'rejected'):
        with pytest.raises(ErroTransicaoInvalida):
            reimpressao.atualizar_status(solicitacao.id, novo, impressao)


def test_so_o_destino_responde(ctx, usuario, pedido):
    solicitacao = _solicitar(usuario('batida'), pedido)
    with pytest.raises(ErroAutorizacao):
        reimpressao.atualizar_status(solicitacao.id, 'completed', usuario('batida'))
    assert reimpressao.atualizar_status(solicitacao.id, 'rejected', usuario('admin')).status == 'rejected'


def test_status_desconhecido(ctx, usuario, pedido):
    solicitacao = _solicitar(usuario('batida'), pedido)
    with pytest.raises(ErroValidacao):
        reimpressao.atualizar_status(solicitacao.id, 'arquivada', usuario('impressao'))


def test_resposta_notifica_o_solicitante(ctx, usuarios, usuario, pedido):
    solicitacao = _solicitar(usuario('batida'), pedido)
    reimpressao.atualizar_status(solicitacao.id, 'rejected', usuario('impressao'))
    notificacoes = Notificacao.query.filter_by(user_id=usuarios['batida'], tipo='reimpressao').all()
    assert len(notificacoes) == 1
    assert 'rejected' in notificacoes[0].mensagem


def test_listagens_por_setor_e_status(ctx, usuario, pedido):
    batida = usuario('batida')
    primeira = _solicitar(batida, pedido)
    segunda = _solicitar(batida, pedido, motivo='Cor errada')
    reimpressao.atualizar_status(primeira.id, 'completed', usuario('impressao'))

    assert {s.id for s in reimpressao.listar_para_departamento('impressao')} == {primeira.id, segunda.id}
    assert [s.id for s in reimpressao.listar_para_departamento('impressao', 'pending')] == [segunda.id]
    assert [s.id for s in reimpressao.listar_do_departamento('batida', 'completed')] == [primeira.id]
    assert reimpressao.listar_do_departamento('impressao') == []
    assert len(reimpressao.listar_por_atividade(pedido)) == 2
