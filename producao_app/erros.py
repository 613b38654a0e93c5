# producao_app/erros.py
from flask import jsonify


class ErroProducao(Exception):
    status_code = 500

    def __init__(self, mensagem):
        super().__init__(mensagem)
        self.mensagem = mensagem


class ErroValidacao(ErroProducao):
    """Campo obrigatório ausente ou com formato inválido."""
    status_code = 400


class ErroAutorizacao(ErroProducao):
    status_code = 403


class ErroNaoEncontrado(ErroProducao):
    status_code = 404


class ErroTransicaoInvalida(ErroProducao):
    """A transição pedida não é permitida no estado atual do fluxo."""
    status_code = 409


class ErroArmazenamentoTransitorio(ErroProducao):
    """Falha de conexão ou timeout do banco. A operação pode ser repetida pelo usuário."""
    status_code = 503


def registrar_handlers(app):
    @app.errorhandler(ErroProducao)
    def tratar_erro_producao(erro):
        return jsonify({'error': erro.mensagem}), erro.status_code
