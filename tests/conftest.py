import os
from datetime import datetime, timedelta

for variavel in ('SUPABASE_URL', 'SUPABASE_KEY', 'MERCADOPAGO_ACCESS_TOKEN', 'PUSHIN_PAY_TOKEN',
                 'EZZEBANK_API_KEY', 'EZZEBANK_MERCHANT_ID', 'EZZEBANK_USE_PROXY', 'EZZEBANK_PROXY_URL',
                 'EZZEBANK_WEBHOOK_SECRET', 'EZZEBANK_WEBHOOK_URL', 'ADMIN_USERNAME', 'ADMIN_PASSWORD'):
    os.environ.pop(variavel, None)

import pytest
from werkzeug.security import generate_password_hash

import armazenamento
import app as app_module

SENHA_ADMIN = 'admin-senha'


@pytest.fixture(autouse=True)
def memoria():
    armazenamento.resetar_memoria()
    app_module.inicializar_dados()
    yield
    armazenamento.resetar_memoria()


@pytest.fixture
def client():
    app_module.app.config['TESTING'] = True
    yield app_module.app.test_client()


@pytest.fixture
def admin_client():
    armazenamento.inserir('usuarios', {
        'username': 'admin',
        'nome': 'Administrador',
        'email': None,
        'cpf': None,
        'senha_hash': generate_password_hash(SENHA_ADMIN),
        'saldo': 0.0,
        'is_admin': True,
        'ativo': True
    })
    app_module.app.config['TESTING'] = True
    c = app_module.app.test_client()
    resposta = c.post('/api/login', json={'username': 'admin', 'password': SENHA_ADMIN})
    assert resposta.status_code == 200
    yield c


def registrar(client, username='jogador', senha='segredo123', saldo=None, **extra):
    resposta = client.post('/api/register', json=dict({'username': username, 'password': senha}, **extra))
    assert resposta.status_code == 201, resposta.get_json()
    usuario = resposta.get_json()['usuario']
    if saldo:
        armazenamento.atualizar_saldo(usuario['id'], saldo)
    return usuario


def saldo_de(usuario_id):
    return armazenamento.buscar_um('usuarios', id=usuario_id)['saldo']


def sorteio_aberto(horas=24, nome='Federal'):
    quando = (datetime.now() + timedelta(hours=horas)).replace(second=0, microsecond=0)
    return armazenamento.inserir('sorteios', {
        'nome': nome,
        'hora': quando.strftime('%H:%M'),
        'data': quando.isoformat(),
        'status': 'pending',
        'resultado': None,
        'grupo_vencedor': None
    })


def modalidade(tipo):
    return armazenamento.buscar_um('modalidades', tipo=tipo)
