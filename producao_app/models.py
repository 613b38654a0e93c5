# producao_app/models.py
from flask_login import UserMixin
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.types import JSON
from werkzeug.security import generate_password_hash, check_password_hash
from .extensions import db

# --- STATUS ---

STATUS_EM_ANDAMENTO = 'in_progress'
STATUS_CONCLUIDA = 'completed'

PROGRESSO_PENDENTE = 'pending'
PROGRESSO_CONCLUIDO = 'completed'

REIMPRESSAO_PENDENTE = 'pending'
REIMPRESSAO_EM_ANDAMENTO = 'in_progress'
REIMPRESSAO_CONCLUIDA = 'completed'
REIMPRESSAO_REJEITADA = 'rejected'
STATUS_REIMPRESSAO = (
    REIMPRESSAO_PENDENTE, REIMPRESSAO_EM_ANDAMENTO, REIMPRESSAO_CONCLUIDA, REIMPRESSAO_REJEITADA
)

PRIORIDADES = ('low', 'normal', 'high', 'urgent')

# --- MODELOS PRINCIPAIS ---

class Usuario(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    nome = db.Column(db.String(150), nullable=False)
    # 'admin' ou o nome de um dos setores
    role = db.Column(db.String(20), nullable=False)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def eh_admin(self):
        return self.role == 'admin'


class Atividade(db.Model):
    """Um pedido de produção."""
    __tablename__ = 'activities'

    id = db.Column(db.Integer, primary_key=True)
    titulo = db.Column(db.String(200), nullable=False)
    descricao = db.Column(db.Text, nullable=False, default='')
    imagem = db.Column(db.String(500), nullable=False, default='')
    imagens_adicionais = db.Column(MutableList.as_mutable(JSON), default=list)
    quantidade = db.Column(db.Integer, nullable=False, default=1)
    nome_cliente = db.Column(db.String(200))
    prioridade = db.Column(db.String(20))
    prazo = db.Column(db.String(100))
    observacoes = db.Column(db.Text)
    criado_por = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    data_criacao = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_EM_ANDAMENTO)

    progressos = db.relationship('ProgressoAtividade', backref='atividade', lazy=True,
                                 cascade='all, delete-orphan')
    notificacoes = db.relationship('Notificacao', backref='atividade', lazy=True,
                                   cascade='all, delete-orphan')
    reimpressoes = db.relationship('SolicitacaoReimpressao', backref='atividade', lazy=True,
                                   cascade='all, delete-orphan')


class ProgressoAtividade(db.Model):
    """Situação de um pedido em um setor. Existe no máximo uma linha por (pedido, setor)."""
    __tablename__ = 'activity_progress'

    id = db.Column(db.Integer, primary_key=True)
    atividade_id = db.Column(db.Integer, db.ForeignKey('activities.id', ondelete='CASCADE'), nullable=False)
    departamento = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=PROGRESSO_PENDENTE)
    concluido_por = db.Column(db.String(150))
    data_conclusao = db.Column(db.String(100))
    observacoes = db.Column(db.Text)
    retornado_por = db.Column(db.String(150))
    data_retorno = db.Column(db.String(100))

    __table_args__ = (
        db.UniqueConstraint('atividade_id', 'departamento', name='uq_progresso_atividade_departamento'),
        db.Index('idx_progresso_departamento_status', 'departamento', 'status'),
    )

# --- MODELOS DE SUPORTE ---

class Notificacao(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    atividade_id = db.Column(db.Integer, db.ForeignKey('activities.id', ondelete='CASCADE'))
    departamento = db.Column(db.String(20))
    tipo = db.Column(db.String(50))
    mensagem = db.Column(db.String(500), nullable=False)
    lida = db.Column(db.Boolean, default=False, nullable=False)
    data_criacao = db.Column(db.String(100), nullable=False)

    usuario = db.relationship('Usuario', backref=db.backref('notificacoes', lazy=True,
                                                            cascade='all, delete-orphan'))


class SolicitacaoReimpressao(db.Model):
    __tablename__ = 'reprint_requests'

    id = db.Column(db.Integer, primary_key=True)
    atividade_id = db.Column(db.Integer, db.ForeignKey('activities.id', ondelete='CASCADE'), nullable=False)
    titulo_atividade = db.Column(db.String(200))
    imagem_atividade = db.Column(db.String(500))
    solicitado_por = db.Column(db.String(150), nullable=False)
    motivo = db.Column(db.String(500), nullable=False)
    detalhes = db.Column(db.Text)
    quantidade = db.Column(db.Integer, nullable=False, default=1)
    prioridade = db.Column(db.String(20), nullable=False, default='normal')
    status = db.Column(db.String(20), nullable=False, default=REIMPRESSAO_PENDENTE)
    data_solicitacao = db.Column(db.String(100), nullable=False)
    departamento_origem = db.Column(db.String(20), nullable=False)
    departamento_destino = db.Column(db.String(20), nullable=False)
    processado_por = db.Column(db.String(150))
    data_processamento = db.Column(db.String(100))
    observacoes_resposta = db.Column(db.Text)


class Log(db.Model):
    __tablename__ = 'activity_logs'

    id = db.Column(db.Integer, primary_key=True)
    atividade_id = db.Column(db.Integer, nullable=False)
    autor = db.Column(db.String(150))
    acao = db.Column(db.String(100), nullable=False)
    detalhes = db.Column(db.JSON)
    timestamp = db.Column(db.String(100), nullable=False)

    # O histórico sobrevive à exclusão do pedido, por isso sem chave estrangeira
    __table_args__ = (db.Index('idx_log_atividade', 'atividade_id'),)
