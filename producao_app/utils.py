# producao_app/utils.py
from .extensions import db, agora_iso
from .models import Log


def registrar_log(atividade_id, autor, acao, detalhes=None):
    """
    Registra uma entrada no histórico do pedido. Não faz commit: a entrada
    entra na mesma transação da operação que está sendo registrada.
    """
    novo_log = Log(
        atividade_id=atividade_id,
        autor=autor,
        acao=acao,
        detalhes=detalhes if detalhes is not None else {},
        timestamp=agora_iso()
    )
    db.session.add(novo_log)
    return novo_log


def get_logs(atividade_id):
    """Histórico do pedido, do mais recente para o mais antigo."""
    return Log.query.filter_by(atividade_id=atividade_id)\
                    .order_by(Log.timestamp.desc(), Log.id.desc())\
                    .all()
