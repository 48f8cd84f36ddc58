import pytest
import requests

import ezzebank
from ezzebank import EzzebankService, ErroGateway, resolver_webhook_url
from pix import crc16_ccitt, gerar_payload_pix


class RespostaFalsa:
    def __init__(self, status_code=200, dados=None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._dados = dados or {}
        self.text = str(self._dados)

    def json(self):
        return self._dados


@pytest.fixture
def chamadas(monkeypatch):
    registro = {'respostas': [], 'feitas': []}

    def post_falso(url, json=None, headers=None, timeout=None):
        registro['feitas'].append({'url': url, 'json': json, 'headers': headers})
        resposta = registro['respostas'].pop(0)
        if isinstance(resposta, Exception):
            raise resposta
        return resposta

    monkeypatch.setattr(ezzebank.requests, 'post', post_falso)
    return registro


def _servico(**kwargs):
    parametros = dict(
        api_key='chave-teste', merchant_id='loja-1', base_url='https://ezze.test/v1/',
        webhook_url='https://app.test/api/webhooks/ezzebank', proxy_url='', use_proxy=False,
        webhook_secret=''
    )
    parametros.update(kwargs)
    return EzzebankService(**parametros)


def test_pagamento_direto(chamadas):
    chamadas['respostas'].append(RespostaFalsa(200, {
        'id': 987, 'pix_qr_code': '000201COPIA', 'pix_qr_code_image': 'iVBORw0KGgo='
    }))

    resultado = _servico().criar_pagamento_pix(7, 10.5, nome='Ana', email='ana@exemplo.com')

    feita = chamadas['feitas'][0]
    assert feita['url'] == 'https://ezze.test/v1/payments'
    assert feita['headers']['Authorization'] == 'Bearer chave-teste'
    assert feita['json']['amount'] == 1050
    assert feita['json']['currency'] == 'BRL'
    assert feita['json']['payment_method'] == 'pix'
    assert feita['json']['external_reference'] == 'TX-7'
    assert feita['json']['notify_url'] == 'https://app.test/api/webhooks/ezzebank'
    assert feita['json']['customer']['name'] == 'Ana'

    assert resultado['external_id'] == '987'
    assert resultado['pix_copia_cola'] == '000201COPIA'
    assert resultado['qr_code_url'] == 'data:image/png;base64,iVBORw0KGgo='


def test_valor_minimo(chamadas):
    with pytest.raises(ErroGateway):
        _servico().criar_pagamento_pix(1, 0.99)
    assert chamadas['feitas'] == []


def test_fallback_quando_api_falha_sem_proxy(chamadas):
    chamadas['respostas'].append(RespostaFalsa(500, {'message': 'erro'}))

    resultado = _servico().criar_pagamento_pix(7, 25)

    assert resultado['external_id'].startswith('ezze_fallback_7_')
    assert resultado['detalhes']['status'] == 'pending'
    assert resultado['detalhes']['amount'] == 2500
    assert resultado['pix_copia_cola'].startswith('000201')
    assert '540525.00' in resultado['pix_copia_cola']
    assert resultado['qr_code_url'].startswith('data:image/png;base64,')


def test_fallback_em_erro_de_rede(chamadas):
    chamadas['respostas'].append(requests.ConnectionError('sem rede'))
    resultado = _servico().criar_pagamento_pix(3, 5)
    assert resultado['detalhes']['fallback'] is True


def test_proxy_apos_falha_direta(chamadas):
    chamadas['respostas'].append(RespostaFalsa(502))
    chamadas['respostas'].append(RespostaFalsa(200, {
        'id': 'px-1', 'pix_copy_paste': '000201PROXY', 'pix_qr_code_image': 'UFJPWFk='
    }))

    servico = _servico(proxy_url='https://proxy.test/ezze', use_proxy=True)
    resultado = servico.criar_pagamento_pix(9, 12)

    feita = chamadas['feitas'][1]
    assert feita['url'] == 'https://proxy.test/ezze'
    assert feita['json']['apiKey'] == 'chave-teste'
    assert feita['json']['endpoint'] == '/payments'
    assert feita['json']['requestData']['amount'] == 1200
    assert resultado['external_id'] == 'px-1'
    assert resultado['qr_code_url'] == 'data:image/png;base64,UFJPWFk='


def test_resposta_sem_imagem_segue_para_o_proxy(chamadas):
    chamadas['respostas'].append(RespostaFalsa(200, {'id': 'sem-imagem', 'pix_qr_code': '000201DIRETO'}))
    chamadas['respostas'].append(RespostaFalsa(200, {
        'id': 'px-2', 'pix_qr_code': '000201PROXY', 'pix_qr_code_image': 'UFJPWFk='
    }))

    resultado = _servico(proxy_url='https://proxy.test/ezze', use_proxy=True).criar_pagamento_pix(4, 10)

    assert len(chamadas['feitas']) == 2
    assert resultado['external_id'] == 'px-2'


def test_resposta_sem_imagem_sem_proxy_usa_qr_local(chamadas):
    chamadas['respostas'].append(RespostaFalsa(200, {'id': 'sem-imagem', 'pix_qr_code': '000201DIRETO'}))

    resultado = _servico().criar_pagamento_pix(4, 10)

    assert resultado['detalhes']['fallback'] is True
    assert resultado['external_id'].startswith('ezze_fallback_4_')
    assert resultado['qr_code_url'].startswith('data:image/png;base64,')


def test_falha_do_proxy_levanta_erro(chamadas):
    chamadas['respostas'].append(RespostaFalsa(502))
    chamadas['respostas'].append(RespostaFalsa(500))

    with pytest.raises(ErroGateway):
        _servico(proxy_url='https://proxy.test/ezze', use_proxy=True).criar_pagamento_pix(9, 12)


def test_proxy_sem_url_fica_desativado():
    assert not _servico(proxy_url='', use_proxy=True).use_proxy


@pytest.mark.parametrize('status, esperado', [
    ('pending', 'pending'), ('processing', 'processing'), ('approved', 'completed'),
    ('PAID', 'completed'), ('completed', 'completed'), ('cancelled', 'failed'),
    ('failed', 'failed'), ('refunded', 'refunded'), ('desconhecido', 'pending'), (None, 'pending'),
])
def test_mapear_status(status, esperado):
    assert EzzebankService.mapear_status(status) == esperado


def test_webhook_exige_campos():
    servico = _servico()
    assert not servico.verificar_assinatura_webhook({'id': '1', 'status': 'paid'})
    assert not servico.verificar_assinatura_webhook({'status': 'paid', 'signature': 'x'})
    assert not servico.verificar_assinatura_webhook(None)
    assert servico.verificar_assinatura_webhook({'id': '1', 'status': 'paid', 'signature': 'x'})


def test_webhook_com_segredo_confere_hmac():
    servico = _servico(webhook_secret='s3cr3t')
    payload = {'id': '1', 'status': 'paid', 'amount': 1000}
    payload['signature'] = servico.assinatura_esperada(payload)

    assert servico.verificar_assinatura_webhook(payload)
    assert not servico.verificar_assinatura_webhook(dict(payload, amount=999999))
    assert not servico.verificar_assinatura_webhook(dict(payload, signature='falsa'))

    sem_assinatura = {'id': '1', 'status': 'paid', 'amount': 1000}
    assert servico.verificar_assinatura_webhook(sem_assinatura, payload['signature'])


def test_resolver_webhook_url(monkeypatch):
    monkeypatch.delenv('EZZEBANK_WEBHOOK_URL', raising=False)
    monkeypatch.setenv('APP_HOST', 'https://meu.site/')
    assert resolver_webhook_url() == 'https://meu.site/api/webhooks/ezzebank'

    monkeypatch.setenv('EZZEBANK_WEBHOOK_URL', 'https://outro.site/hook')
    assert resolver_webhook_url() == 'https://outro.site/hook'


def test_crc16_do_br_code():
    assert crc16_ccitt('123456789') == '29B1'
    payload = gerar_payload_pix(10, 'TX-1', chave='chave@pix.com', nome='Loja Ação', cidade='São Paulo')
    assert payload[-4:] == crc16_ccitt(payload[:-4])
    assert '5802BR' in payload
    assert '5909LOJA ACAO' in payload
    assert '62070503TX1' in payload
