# producao_app/serializers.py


def serialize_usuario(u):
    """Converte um objeto Usuario para dicionário (sem o hash da senha)."""
    return {
        'id': u.id,
        'username': u.username,
        'nome': u.nome,
        'role': u.role
    }


def serialize_atividade(a):
    return {
        'id': a.id,
        'titulo': a.titulo,
        'descricao': a.descricao,
        'imagem': a.imagem,
        'imagens_adicionais': list(a.imagens_adicionais or []),
        'quantidade': a.quantidade,
        'nome_cliente': a.nome_cliente,
        'prioridade': a.prioridade,
        'prazo': a.prazo,
        'observacoes': a.observacoes,
        'criado_por': a.criado_por,
        'data_criacao': a.data_criacao,
        'status': a.status
    }


def serialize_progresso(p):
    if not p: return None
    return {
        'id': p.id,
        'atividade_id': p.atividade_id,
        'departamento': p.departamento,
        'status': p.status,
        'concluido_por': p.concluido_por,
        'data_conclusao': p.data_conclusao,
        'observacoes': p.observacoes,
        'retornado_por': p.retornado_por,
        'data_retorno': p.data_retorno
    }


def serialize_notificacao(n):
    return {
        'id': n.id,
        'user_id': n.user_id,
        'atividade_id': n.atividade_id,
        'departamento': n.departamento,
        'tipo': n.tipo,
        'mensagem': n.mensagem,
        'lida': n.lida,
        'data_criacao': n.data_criacao
    }


def serialize_reimpressao(r):
    return {
        'id': r.id,
        'atividade_id': r.atividade_id,
        'titulo_atividade': r.titulo_atividade,
        'imagem_atividade': r.imagem_atividade,
        'solicitado_por': r.solicitado_por,
        'motivo': r.motivo,
        'detalhes': r.detalhes,
        'quantidade': r.quantidade,
        'prioridade': r.prioridade,
        'status': r.status,
        'data_solicitacao': r.data_solicitacao,
        'departamento_origem': r.departamento_origem,
        'departamento_destino': r.departamento_destino,
        'processado_por': r.processado_por,
        'data_processamento': r.data_processamento,
        'observacoes_resposta': r.observacoes_resposta
    }


def serialize_log(log_entry):
    return {
        'id': log_entry.id,
        'atividade_id': log_entry.atividade_id,
        'autor': log_entry.autor,
        'acao': log_entry.acao,
        'detalhes': log_entry.detalhes,
        'timestamp': log_entry.timestamp
    }
