import pytest

import armazenamento
import pagamentos
from conftest import registrar, saldo_de


class RespostaFalsa:
    def __init__(self, status_code=200, dados=None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._dados = dados or {}
        self.text = str(self._dados)

    def json(self):
        return self._dados


class PagamentosMercadoPago:
    """Imita sdk.payment(): guarda o que foi enviado e devolve as respostas configuradas"""

    def __init__(self, criacao=None, consulta=None):
        self.criacao = criacao
        self.consulta = consulta
        self.criados = []
        self.consultados = []

    def create(self, dados):
        self.criados.append(dados)
        if isinstance(self.criacao, Exception):
            raise self.criacao
        return self.criacao

    def get(self, payment_id):
        self.consultados.append(payment_id)
        return self.consulta


@pytest.fixture
def mercadopago_falso(monkeypatch):
    falso = PagamentosMercadoPago()
    tokens = []

    class SdkFalso:
        def __init__(self, token):
            tokens.append(token)

        def payment(self):
            return falso

    monkeypatch.setattr(pagamentos.mercadopago, 'SDK', SdkFalso)
    falso.tokens = tokens
    return falso


def _gateway(admin_client, tipo, api_key):
    resposta = admin_client.post('/api/admin/gateways', json={
        'nome': tipo.title(), 'tipo': tipo, 'ativo': True, 'api_key': api_key
    })
    assert resposta.status_code == 201
    return resposta.get_json()['gateway']


def _cobranca_mp(payment_id=123456, qr_code='000201MP', qr_code_base64='TVA='):
    return {'status': 201, 'response': {
        'id': payment_id,
        'status': 'pending',
        'point_of_interaction': {'transaction_data': {'qr_code': qr_code, 'qr_code_base64': qr_code_base64}}
    }}


# ========== MERCADO PAGO ==========

def test_mercadopago_cria_cobranca_e_credita_na_consulta(client, admin_client, mercadopago_falso):
    _gateway(admin_client, 'mercadopago', 'TEST-token-mp')
    mercadopago_falso.criacao = _cobranca_mp()
    usuario = registrar(client)

    resposta = client.post('/api/payment/deposit', json={'valor': '25,00'})
    assert resposta.status_code == 201
    deposito = resposta.get_json()
    assert deposito['gateway'] == 'mercadopago'
    assert deposito['simulado'] is False
    assert deposito['external_id'] == '123456'
    assert deposito['pix_copia_cola'] == '000201MP'
    assert deposito['qr_code_url'] == 'data:image/png;base64,TVA='

    enviado = mercadopago_falso.criados[0]
    assert mercadopago_falso.tokens[0] == 'TEST-token-mp'
    assert enviado['transaction_amount'] == 25.0
    assert enviado['payment_method_id'] == 'pix'
    assert enviado['external_reference'] == f"TX-{deposito['transacao_id']}"
    assert enviado['notification_url'].endswith('/api/webhooks/mercadopago')

    mercadopago_falso.consulta = {'status': 200, 'response': {'status': 'in_process'}}
    status = client.get(f"/api/payment/{deposito['transacao_id']}/status").get_json()
    assert status['status'] == 'processing'
    assert saldo_de(usuario['id']) == 0.0

    mercadopago_falso.consulta = {'status': 200, 'response': {'status': 'approved'}}
    status = client.get(f"/api/payment/{deposito['transacao_id']}/status").get_json()
    assert status['status'] == 'completed'
    assert status['saldo'] == 25.0
    assert mercadopago_falso.consultados[-1] == '123456'


@pytest.mark.parametrize('criacao', [
    {'status': 400, 'response': {'message': 'invalid payer'}},
    {'status': 201, 'response': {'id': 99, 'point_of_interaction': {}}},
    ConnectionError('timeout'),
])
def test_mercadopago_recusado_marca_deposito_como_falho(client, admin_client, mercadopago_falso, criacao):
    _gateway(admin_client, 'mercadopago', 'TEST-token-mp')
    mercadopago_falso.criacao = criacao
    usuario = registrar(client)

    resposta = client.post('/api/payment/deposit', json={'valor': 300})
    assert resposta.status_code == 502
    assert resposta.get_json()['sucesso'] is False

    transacao = armazenamento.buscar('transacoes_pagamento')[0]
    assert transacao['status'] == 'failed'
    assert transacao['gateway'] is None

    # nenhuma consulta posterior transforma a recusa em pagamento
    client.get(f"/api/payment/{transacao['id']}/status")
    assert saldo_de(usuario['id']) == 0.0
    assert armazenamento.buscar('transacoes') == []


def test_mercadopago_ativo_sem_token_nao_simula(client, admin_client, mercadopago_falso):
    _gateway(admin_client, 'mercadopago', None)
    registrar(client)

    assert client.post('/api/payment/deposit', json={'valor': 10}).status_code == 502
    assert mercadopago_falso.criados == []
    assert armazenamento.buscar('transacoes_pagamento')[0]['status'] == 'failed'


def test_webhook_mercadopago_confirma_pela_api(client, admin_client, mercadopago_falso):
    _gateway(admin_client, 'mercadopago', 'TEST-token-mp')
    mercadopago_falso.criacao = _cobranca_mp(payment_id=555)
    usuario = registrar(client)
    client.post('/api/payment/deposit', json={'valor': 40})

    aviso = {'type': 'payment', 'data': {'id': '555'}}

    # o aviso sozinho não credita: vale o status lido na API
    mercadopago_falso.consulta = {'status': 200, 'response': {'status': 'pending'}}
    assert client.post('/api/webhooks/mercadopago', json=aviso).status_code == 200
    assert saldo_de(usuario['id']) == 0.0

    mercadopago_falso.consulta = {'status': 200, 'response': {'status': 'approved'}}
    assert client.post('/api/webhooks/mercadopago', json=aviso).status_code == 200
    assert saldo_de(usuario['id']) == 40.0

    assert client.post('/api/webhooks/mercadopago', json=aviso).status_code == 200
    assert saldo_de(usuario['id']) == 40.0
    assert set(mercadopago_falso.consultados) == {'555'}


@pytest.mark.parametrize('corpo', [
    {'type': 'payment', 'data': '555'},
    {'type': 'payment', 'data': ['555']},
    {'type': 'payment'},
    ['payment', '555'],
    'texto',
])
def test_webhook_mercadopago_com_corpo_inesperado(client, corpo):
    assert client.post('/api/webhooks/mercadopago', json=corpo).status_code == 200


# ========== PUSHIN PAY ==========

@pytest.fixture
def pushinpay(monkeypatch):
    registro = {'post': [], 'get': [], 'resposta_post': None, 'resposta_get': None}

    def post_falso(url, json=None, headers=None, timeout=None):
        registro['post'].append({'url': url, 'json': json, 'headers': headers})
        return registro['resposta_post']

    def get_falso(url, headers=None, timeout=None):
        registro['get'].append({'url': url, 'headers': headers})
        return registro['resposta_get']

    monkeypatch.setattr(pagamentos.requests, 'post', post_falso)
    monkeypatch.setattr(pagamentos.requests, 'get', get_falso)
    return registro


def test_pushinpay_cria_cobranca_e_credita_pelo_webhook(client, admin_client, pushinpay):
    _gateway(admin_client, 'pushinpay', 'pp-token')
    pushinpay['resposta_post'] = RespostaFalsa(200, {
        'id': 'pp-1', 'status': 'created', 'qr_code': '000201PP', 'qr_code_base64': 'UFA='
    })
    usuario = registrar(client)

    deposito = client.post('/api/payment/deposit', json={'valor': '10,00'}).get_json()
    assert deposito['gateway'] == 'pushinpay'
    assert deposito['external_id'] == 'pp-1'
    assert deposito['pix_copia_cola'] == '000201PP'
    assert deposito['qr_code_url'] == 'data:image/png;base64,UFA='

    enviado = pushinpay['post'][0]
    assert enviado['url'].endswith('/api/pix/cashIn')
    assert enviado['json']['value'] == 1000
    assert enviado['json']['webhook_url'].endswith('/api/webhooks/pushinpay')
    assert enviado['headers']['Authorization'] == 'Bearer pp-token'

    pushinpay['resposta_get'] = RespostaFalsa(200, {'id': 'pp-1', 'status': 'created'})
    assert client.post('/api/webhooks/pushinpay', json={'id': 'pp-1', 'status': 'paid'}).status_code == 200
    assert saldo_de(usuario['id']) == 0.0

    pushinpay['resposta_get'] = RespostaFalsa(200, {'id': 'pp-1', 'status': 'paid'})
    assert client.post('/api/webhooks/pushinpay', data={'id': 'pp-1', 'status': 'paid'}).status_code == 200
    assert saldo_de(usuario['id']) == 10.0
    assert pushinpay['get'][-1]['url'].endswith('/api/v2/transactions/pp-1')

    client.post('/api/webhooks/pushinpay', json={'id': 'pp-1'})
    assert saldo_de(usuario['id']) == 10.0


def test_pushinpay_status_pela_consulta(client, admin_client, pushinpay):
    _gateway(admin_client, 'pushinpay', 'pp-token')
    pushinpay['resposta_post'] = RespostaFalsa(201, {
        'id': 'pp-2', 'qr_code': '000201PP', 'qr_code_base64': 'UFA='
    })
    registrar(client)
    deposito = client.post('/api/payment/deposit', json={'valor': 5}).get_json()

    pushinpay['resposta_get'] = RespostaFalsa(200, {'status': 'expired'})
    status = client.get(f"/api/payment/{deposito['transacao_id']}/status").get_json()
    assert status['status'] == 'failed'
    assert status['saldo'] == 0.0


def test_pushinpay_valor_minimo(client, admin_client, pushinpay):
    _gateway(admin_client, 'pushinpay', 'pp-token')
    registrar(client)

    resposta = client.post('/api/payment/deposit', json={'valor': '1,50'})
    assert resposta.status_code == 502
    assert 'R$2,00' in resposta.get_json()['erro']
    assert pushinpay['post'] == []
    assert armazenamento.buscar('transacoes_pagamento')[0]['status'] == 'failed'


@pytest.mark.parametrize('resposta', [
    RespostaFalsa(200, {'id': 'pp-3', 'qr_code': '000201PP'}),
    RespostaFalsa(200, {'id': 'pp-3', 'qr_code_base64': 'UFA='}),
    RespostaFalsa(401, {'message': 'Unauthenticated'}),
])
def test_pushinpay_resposta_incompleta_falha(client, admin_client, pushinpay, resposta):
    _gateway(admin_client, 'pushinpay', 'pp-token')
    pushinpay['resposta_post'] = resposta
    usuario = registrar(client)

    assert client.post('/api/payment/deposit', json={'valor': 10}).status_code == 502
    assert armazenamento.buscar('transacoes_pagamento')[0]['status'] == 'failed'
    assert saldo_de(usuario['id']) == 0.0
