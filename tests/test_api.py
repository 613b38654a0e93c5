import pytest
from sqlalchemy.exc import OperationalError

from producao_app import armazenamento


@pytest.fixture
def admin(login):
    return login('admin')


@pytest.fixture
def atividade_id(admin):
    resposta = admin.post('/api/atividades', json={
        'titulo': 'Camisa do time', 'quantidade': 20, 'prioridade': 'high',
        'prazo': '2030-06-01', 'nome_cliente': 'Time Azul'
    })
    assert resposta.status_code == 201
    return resposta.get_json()['id']

# --- LOGIN ---

def test_login_invalido(app, usuarios):
    client = app.test_client()
    assert client.post('/api/usuarios/login', json={'username': 'admin', 'password': 'errada'}).status_code == 401
    assert client.post('/api/usuarios/login', json={}).status_code == 400


def test_rotas_exigem_login(app):
    client = app.test_client()
    resposta = client.get('/api/atividades')
    assert resposta.status_code == 401
    assert 'error' in resposta.get_json()


def test_me_e_logout(login):
    client = login('costura')
    assert client.get('/api/usuarios/me').get_json()['role'] == 'costura'
    assert client.post('/api/usuarios/logout').status_code == 200
    assert client.get('/api/usuarios/me').status_code == 401

# --- USUÁRIOS ---

def test_admin_gerencia_usuarios(admin):
    resposta = admin.post('/api/usuarios', json={
        'username': 'joao', 'password': 'segredo1', 'nome': 'João', 'role': 'batida'
    })
    assert resposta.status_code == 201
    user_id = resposta.get_json()['id']

    assert admin.get(f'/api/usuarios/{user_id}').get_json()['nome'] == 'João'
    assert admin.put(f'/api/usuarios/{user_id}', json={'role': 'costura'}).get_json()['role'] == 'costura'
    assert admin.post(f'/api/usuarios/{user_id}/senha', json={'password': 'nova-senha'}).status_code == 200
    assert admin.delete(f'/api/usuarios/{user_id}').status_code == 200
    assert admin.get(f'/api/usuarios/{user_id}').status_code == 404


def test_criar_usuario_invalido(admin):
    base = {'username': 'maria', 'password': 'segredo1', 'nome': 'Maria', 'role': 'batida'}
    assert admin.post('/api/usuarios', json=dict(base, role='gerente')).status_code == 400
    assert admin.post('/api/usuarios', json=dict(base, password='123')).status_code == 400
    assert admin.post('/api/usuarios', json=dict(base, username='batida')).status_code == 400


def test_funcionario_nao_gerencia_usuarios(login):
    client = login('batida')
    assert client.get('/api/usuarios').status_code == 403

# --- PEDIDOS ---

def test_somente_admin_cria_pedido(login):
    resposta = login('gabarito').post('/api/atividades', json={'titulo': 'X', 'quantidade': 1})
    assert resposta.status_code == 403


def test_criar_pedido_invalido(admin):
    assert admin.post('/api/atividades', json={'titulo': 'X', 'quantidade': -1}).status_code == 400


def test_fila_do_funcionario(login, atividade_id):
    resposta = login('gabarito').get('/api/atividades')
    dados = resposta.get_json()
    assert resposta.status_code == 200
    assert dados['departamento'] == 'gabarito'
    assert dados['parcial'] is False
    assert [a['id'] for a in dados['atividades']] == [atividade_id]

    assert login('impressao').get('/api/atividades').get_json()['atividades'] == []


def test_funcionario_nao_ve_fila_de_outro_setor(login, atividade_id):
    assert login('impressao').get('/api/atividades?departamento=gabarito').status_code == 403


def test_admin_lista_tudo_ou_por_setor(admin, atividade_id):
    assert [a['id'] for a in admin.get('/api/atividades').get_json()] == [atividade_id]
    por_setor = admin.get('/api/atividades?departamento=gabarito').get_json()
    assert [a['id'] for a in por_setor['atividades']] == [atividade_id]


def test_editar_e_excluir_pedido(admin, atividade_id):
    resposta = admin.put(f'/api/atividades/{atividade_id}', json={'quantidade': 25})
    assert resposta.get_json()['quantidade'] == 25
    assert admin.delete(f'/api/atividades/{atividade_id}').status_code == 200
    assert admin.get(f'/api/atividades/{atividade_id}').status_code == 404

# --- TRANSIÇÕES ---

def test_concluir_pelo_proprio_setor(login, atividade_id):
    gabarito = login('gabarito')
    resposta = gabarito.post(f'/api/atividades/{atividade_id}/concluir',
                             json={'concluido_por': 'Ana', 'notas': 'ok'})
    assert resposta.status_code == 200
    assert resposta.get_json()['progresso']['departamento'] == 'gabarito'

    progresso = gabarito.get(f'/api/atividades/{atividade_id}/progresso').get_json()
    assert [(p['departamento'], p['status']) for p in progresso] == [
        ('gabarito', 'completed'), ('impressao', 'pending')
    ]


def test_concluir_duas_vezes_retorna_409(login, atividade_id):
    gabarito = login('gabarito')
    url = f'/api/atividades/{atividade_id}/concluir'
    assert gabarito.post(url, json={'concluido_por': 'Ana'}).status_code == 200
    resposta = gabarito.post(url, json={'concluido_por': 'Ana'})
    assert resposta.status_code == 409
    assert 'error' in resposta.get_json()


def test_concluir_sem_responsavel_retorna_400(login, atividade_id):
    resposta = login('gabarito').post(f'/api/atividades/{atividade_id}/concluir', json={})
    assert resposta.status_code == 400


def test_concluir_por_outro_setor_retorna_403(login, atividade_id):
    resposta = login('gabarito').post(f'/api/atividades/{atividade_id}/concluir',
                                      json={'concluido_por': 'Ana', 'departamento': 'impressao'})
    assert resposta.status_code == 403


def test_concluir_em_setor_sem_o_pedido(login, atividade_id):
    resposta = login('batida').post(f'/api/atividades/{atividade_id}/concluir', json={'concluido_por': 'Caio'})
    assert resposta.status_code == 404


def test_concluir_pedido_inexistente(login):
    resposta = login('gabarito').post('/api/atividades/9999/concluir', json={'concluido_por': 'Ana'})
    assert resposta.status_code == 404


def test_admin_precisa_informar_o_setor(admin, atividade_id):
    url = f'/api/atividades/{atividade_id}/concluir'
    assert admin.post(url, json={'concluido_por': 'Ana'}).status_code == 400
    assert admin.post(url, json={'concluido_por': 'Ana', 'departamento': 'gabarito'}).status_code == 200


def test_retornar(login, atividade_id):
    login('gabarito').post(f'/api/atividades/{atividade_id}/concluir', json={'concluido_por': 'Ana'})
    impressao = login('impressao')

    resposta = impressao.post(f'/api/atividades/{atividade_id}/retornar',
                              json={'retornado_por': 'Bia', 'notas': 'Arte errada'})
    dados = resposta.get_json()
    assert resposta.status_code == 200
    assert dados['progresso_anterior']['departamento'] == 'gabarito'
    assert dados['progresso_anterior']['retornado_por'] == 'Bia'
    assert dados['progresso_atual']['status'] == 'completed'

    historico = impressao.get(f'/api/atividades/{atividade_id}/historico').get_json()
    assert [h['acao'] for h in historico] == ['RETORNO', 'CONCLUSAO', 'CRIACAO']


def test_retornar_no_primeiro_setor_retorna_409(login, atividade_id):
    resposta = login('gabarito').post(f'/api/atividades/{atividade_id}/retornar', json={'retornado_por': 'Ana'})
    assert resposta.status_code == 409


def test_concluidas_do_setor(login, atividade_id):
    gabarito = login('gabarito')
    gabarito.post(f'/api/atividades/{atividade_id}/concluir', json={'concluido_por': 'Ana'})
    concluidas = gabarito.get('/api/atividades/concluidas').get_json()
    assert [c['atividade']['id'] for c in concluidas] == [atividade_id]
    assert concluidas[0]['progresso']['concluido_por'] == 'Ana'

# --- SETORES E ADMIN ---

def test_lista_de_setores(login):
    setores = login('costura').get('/api/departamentos').get_json()
    assert [s['id'] for s in setores] == ['gabarito', 'impressao', 'batida', 'costura', 'embalagem']
    assert setores[0]['anterior'] is None
    assert setores[-1]['proximo'] is None


def test_estatisticas_do_setor(login, atividade_id):
    gabarito = login('gabarito')
    assert gabarito.get('/api/departamentos/gabarito/estatisticas').get_json()['pendentes'] == 1
    assert gabarito.get('/api/departamentos/batida/estatisticas').status_code == 403
    assert gabarito.get('/api/departamentos/corte/estatisticas').status_code == 400


def test_painel_do_admin(admin, atividade_id):
    painel = admin.get('/api/admin/atividades?status=producao&page=1&limit=10&search=azul').get_json()
    assert [i['id'] for i in painel['itens']] == [atividade_id]
    assert painel['itens'][0]['departamento_atual'] == 'gabarito'

    estatisticas = admin.get('/api/admin/estatisticas').get_json()
    assert estatisticas['total'] == 1
    assert estatisticas['por_departamento']['gabarito']['pendentes'] == 1

    contagem = admin.get('/api/admin/departamentos').get_json()
    assert contagem['gabarito'] == 1
    assert contagem['concluido'] == 0


def test_painel_exige_admin(login):
    assert login('embalagem').get('/api/admin/atividades').status_code == 403

# --- NOTIFICAÇÕES ---

def test_notificacoes_do_usuario(login, atividade_id):
    gabarito = login('gabarito')
    notificacoes = gabarito.get('/api/notificacoes').get_json()
    assert len(notificacoes) == 1
    assert notificacoes[0]['lida'] is False

    assert gabarito.put(f"/api/notificacoes/{notificacoes[0]['id']}/lida").status_code == 200
    assert gabarito.get('/api/notificacoes').get_json()[0]['lida'] is True
    # Notificação de outro usuário
    assert login('batida').put(f"/api/notificacoes/{notificacoes[0]['id']}/lida").status_code == 404

    assert gabarito.post('/api/notificacoes/marcar-todas-lidas').status_code == 200
    assert gabarito.delete('/api/notificacoes').status_code == 200
    assert gabarito.get('/api/notificacoes').get_json() == []

# --- REIMPRESSÕES ---

def test_reimpressao_pela_api(login, atividade_id):
    batida = login('batida')
    impressao = login('impressao')

    resposta = batida.post('/api/reimpressoes', json={
        'atividade_id': atividade_id, 'motivo': 'Estampa falhada', 'quantidade': 2
    })
    assert resposta.status_code == 201
    solicitacao_id = resposta.get_json()['id']

    pendentes = impressao.get('/api/reimpressoes/para-departamento/impressao?status=pending').get_json()
    assert [s['id'] for s in pendentes] == [solicitacao_id]
    assert batida.get('/api/reimpressoes/para-departamento/impressao').status_code == 403

    resposta = batida.put(f'/api/reimpressoes/{solicitacao_id}/status', json={'status': 'completed'})
    assert resposta.status_code == 403

    resposta = impressao.put(f'/api/reimpressoes/{solicitacao_id}/status', json={'status': 'completed'})
    assert resposta.get_json()['status'] == 'completed'
    resposta = impressao.put(f'/api/reimpressoes/{solicitacao_id}/status', json={'status': 'rejected'})
    assert resposta.status_code == 409

    feitas = batida.get('/api/reimpressoes/do-departamento/batida?status=completed').get_json()
    assert [s['id'] for s in feitas] == [solicitacao_id]
    assert len(batida.get(f'/api/reimpressoes/atividade/{atividade_id}').get_json()) == 1
    assert batida.get(f'/api/reimpressoes/{solicitacao_id}').get_json()['processado_por'] == 'Equipe impressao'


def test_reimpressao_sem_atividade(login):
    assert login('batida').post('/api/reimpressoes', json={'motivo': 'x'}).status_code == 400


def test_admin_lista_reimpressoes_por_status(login, atividade_id):
    admin = login('admin')
    solicitacao_id = login('batida').post('/api/reimpressoes', json={
        'atividade_id': atividade_id, 'motivo': 'Cor errada'
    }).get_json()['id']

    assert [s['id'] for s in admin.get('/api/reimpressoes').get_json()] == [solicitacao_id]
    assert admin.get('/api/reimpressoes?status=rejected').get_json() == []

    resposta = admin.get('/api/reimpressoes?status=arquivada')
    assert resposta.status_code == 400
    assert 'arquivada' in resposta.get_json()['error']

# --- BANCO FORA DO AR ---

def test_banco_indisponivel_retorna_503(login, atividade_id, monkeypatch):
    def falha(*args, **kwargs):
        raise OperationalError('SELECT', {}, Exception('timeout'))

    monkeypatch.setattr(armazenamento, 'get_atividade', falha)
    resposta = login('gabarito').get(f'/api/atividades/{atividade_id}')
    assert resposta.status_code == 503
    assert 'error' in resposta.get_json()
