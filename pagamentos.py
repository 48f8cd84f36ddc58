import os
import random
from datetime import datetime

import requests
import mercadopago

from armazenamento import (
    buscar, buscar_um, atualizar, atualizar_se_status, atualizar_saldo,
    registrar_transacao, log_error, log_info
)
from ezzebank import EzzebankService, ErroGateway
from pix import gerar_payload_pix, gerar_qr_code_base64, como_data_uri

MP_ACCESS_TOKEN = os.getenv('MERCADOPAGO_ACCESS_TOKEN')
PUSHIN_PAY_TOKEN = os.getenv('PUSHIN_PAY_TOKEN')
PUSHIN_PAY_URL = os.getenv('PUSHIN_PAY_URL', 'https://api.pushinpay.com.br')
PUSHIN_PAY_VALOR_MINIMO = 2.00

# Pagamento simulado é aprovado na primeira consulta feita após este intervalo
SEGUNDOS_APROVACAO_SIMULADA = int(os.getenv('SIMULATED_APPROVAL_SECONDS', 3))

TIPOS_GATEWAY = ['ezzebank', 'mercadopago', 'pushinpay']
STATUS_ABERTOS = ['pending', 'processing']

sdk = None
try:
    if MP_ACCESS_TOKEN:
        sdk = mercadopago.SDK(MP_ACCESS_TOKEN)
        print("✅ Mercado Pago SDK configurado com sucesso")
    else:
        print("❌ Token do Mercado Pago não encontrado - usando pagamentos simulados")
except Exception as e:
    print(f"❌ Erro ao configurar Mercado Pago: {str(e)}")
    print("📝 Usando sistema de pagamentos simulado")

STATUS_MERCADOPAGO = {
    'approved': 'completed',
    'authorized': 'processing',
    'in_process': 'processing',
    'in_mediation': 'processing',
    'pending': 'pending',
    'rejected': 'failed',
    'cancelled': 'failed',
    'refunded': 'refunded',
    'charged_back': 'refunded',
}

STATUS_PUSHINPAY = {
    'created': 'pending',
    'pending': 'pending',
    'paid': 'completed',
    'completed': 'completed',
    'canceled': 'failed',
    'cancelled': 'failed',
    'expired': 'failed',
}


def gerar_payment_id():
    """Gera ID de pagamento simulado"""
    return f"PAY_{int(datetime.now().timestamp())}_{random.randint(1000, 9999)}"


def gerar_qr_code_simulado(valor, referencia):
    """Gera QR code simulado para pagamentos"""
    qr_text = gerar_payload_pix(valor, referencia)
    return {
        'qr_code': qr_text,
        'qr_code_base64': gerar_qr_code_base64(qr_text)
    }


def gateway_ativo():
    """Primeiro gateway ativo cadastrado (ou None)"""
    gateways = buscar('gateways', ordem='id', ativo=True)
    return gateways[0] if gateways else None


def servico_ezzebank(gateway=None):
    gateway = gateway or {}
    config = gateway.get('config') or {}
    return EzzebankService(
        api_key=gateway.get('api_key') or None,
        merchant_id=config.get('merchant_id'),
        base_url=config.get('base_url'),
        webhook_url=config.get('webhook_url'),
        proxy_url=config.get('proxy_url'),
        use_proxy=config.get('use_proxy'),
        webhook_secret=gateway.get('secret_key') or None
    )


def _sdk_mercadopago(gateway):
    if gateway and gateway.get('api_key'):
        return mercadopago.SDK(gateway['api_key'])
    return sdk


# ========== CRIAÇÃO DE COBRANÇAS ==========

def criar_cobranca(transacao, usuario, url_base):
    """Gera a cobrança PIX de um depósito no gateway ativo.

    Devolve {'gateway', 'external_id', 'qr_code', 'qr_code_url', 'simulado', 'detalhes'}.
    Levanta ErroGateway quando o gateway escolhido recusa a cobrança.
    """
    gateway = gateway_ativo()
    tipo = gateway['tipo'] if gateway else None
    valor = float(transacao['valor'])

    if tipo == 'ezzebank':
        resultado = servico_ezzebank(gateway).criar_pagamento_pix(
            transacao['id'], valor,
            nome=usuario.get('nome') or usuario.get('username'),
            email=usuario.get('email'),
            documento=usuario.get('cpf')
        )
        return {
            'gateway': 'ezzebank',
            'external_id': resultado['external_id'],
            'qr_code': resultado['pix_copia_cola'],
            'qr_code_url': resultado['qr_code_url'],
            'simulado': bool(resultado['detalhes'].get('fallback')),
            'detalhes': resultado['detalhes']
        }

    if tipo == 'pushinpay':
        return _cobranca_pushinpay(transacao, gateway, url_base)

    cliente_mp = _sdk_mercadopago(gateway)
    if tipo == 'mercadopago' and not cliente_mp:
        raise ErroGateway("Token do Mercado Pago não configurado")
    if cliente_mp:
        return _cobranca_mercadopago(cliente_mp, transacao, usuario, url_base)

    # Pagamento simulado só quando não há gateway nem token configurado
    payment_id = gerar_payment_id()
    qr_data = gerar_qr_code_simulado(valor, f"DEP{transacao['id']}")
    log_info("criar_cobranca", f"Pagamento simulado criado: {payment_id}")
    return {
        'gateway': 'simulado',
        'external_id': payment_id,
        'qr_code': qr_data['qr_code'],
        'qr_code_url': como_data_uri(qr_data['qr_code_base64']),
        'simulado': True,
        'detalhes': {'id': payment_id, 'status': 'pending'}
    }


def _cobranca_mercadopago(cliente_mp, transacao, usuario, url_base):
    payment_data = {
        "transaction_amount": float(transacao['valor']),
        "description": f"Depósito ID: {transacao['id']}",
        "payment_method_id": "pix",
        "payer": {
            "email": usuario.get('email') or "cliente@pixbetbicho.com.br",
            "first_name": usuario.get('nome') or usuario.get('username') or "Cliente"
        },
        "notification_url": f"{url_base.rstrip('/')}/api/webhooks/mercadopago",
        "external_reference": f"TX-{transacao['id']}"
    }

    try:
        payment_response = cliente_mp.payment().create(payment_data)
    except Exception as e:
        log_error("criar_cobranca_mercadopago", e, {"transacao_id": transacao['id']})
        raise ErroGateway(f"Falha de comunicação com o Mercado Pago: {e}")

    if payment_response.get("status") != 201:
        log_error("criar_cobranca_mercadopago", "Cobrança recusada",
                  {"transacao_id": transacao['id'], "status": payment_response.get("status")})
        raise ErroGateway("Erro na resposta do Mercado Pago")

    payment = payment_response.get("response") or {}
    pix_data = payment.get('point_of_interaction', {}).get('transaction_data', {})
    if not payment.get('id') or not pix_data.get('qr_code'):
        raise ErroGateway("Resposta do Mercado Pago não contém os dados do PIX necessários")

    log_info("criar_cobranca", f"Pagamento real criado: {payment['id']}")
    return {
        'gateway': 'mercadopago',
        'external_id': str(payment['id']),
        'qr_code': pix_data['qr_code'],
        'qr_code_url': como_data_uri(pix_data.get('qr_code_base64')),
        'simulado': False,
        'detalhes': {'id': payment['id'], 'status': payment.get('status')}
    }


def _cobranca_pushinpay(transacao, gateway, url_base):
    token = gateway.get('api_key') or PUSHIN_PAY_TOKEN
    if not token:
        raise ErroGateway("Token da Pushin Pay não configurado")

    valor = float(transacao['valor'])
    if valor < PUSHIN_PAY_VALOR_MINIMO:
        raise ErroGateway(f"A Pushin Pay exige um valor mínimo de R$2,00. Valor digitado: R${valor:.2f}")

    try:
        response = requests.post(
            f"{PUSHIN_PAY_URL}/api/pix/cashIn",
            json={
                'value': int(round(valor * 100)),
                'webhook_url': f"{url_base.rstrip('/')}/api/webhooks/pushinpay"
            },
            headers={
                'Authorization': f"Bearer {token}",
                'Accept': 'application/json'
            },
            timeout=15
        )
    except requests.RequestException as e:
        raise ErroGateway(f"Falha de comunicação com a Pushin Pay: {e}")

    if not response.ok:
        raise ErroGateway(f"Erro na API da Pushin Pay: {response.status_code}")

    dados = response.json()
    if not dados.get('qr_code') or not dados.get('qr_code_base64'):
        raise ErroGateway("Resposta da Pushin Pay não contém os dados do PIX necessários")

    return {
        'gateway': 'pushinpay',
        'external_id': str(dados.get('id') or f"PUSHIN-{int(datetime.now().timestamp() * 1000)}-{transacao['id']}"),
        'qr_code': dados['qr_code'],
        'qr_code_url': como_data_uri(dados['qr_code_base64']),
        'simulado': False,
        'detalhes': dados
    }


# ========== CONSULTA E CONFIRMAÇÃO ==========

def consultar_status_gateway(transacao):
    """Status atual da cobrança no gateway, já no vocabulário interno"""
    gateway = transacao.get('gateway')
    external_id = transacao.get('external_id')

    if gateway == 'mercadopago':
        cliente_mp = _sdk_mercadopago(gateway_do_tipo('mercadopago'))
        if cliente_mp and external_id:
            try:
                payment_response = cliente_mp.payment().get(str(external_id))
                if payment_response["status"] == 200:
                    status = payment_response["response"].get('status')
                    return STATUS_MERCADOPAGO.get(status, 'pending')
            except Exception as e:
                log_error("consultar_status_mercadopago", e, {"external_id": external_id})
        return transacao['status']

    if gateway == 'pushinpay':
        gateway_cfg = gateway_do_tipo('pushinpay') or {}
        token = gateway_cfg.get('api_key') or PUSHIN_PAY_TOKEN
        if token and external_id:
            try:
                response = requests.get(
                    f"{PUSHIN_PAY_URL}/api/v2/transactions/{external_id}",
                    headers={'Authorization': f"Bearer {token}", 'Accept': 'application/json'},
                    timeout=15
                )
                if response.ok:
                    return STATUS_PUSHINPAY.get(str(response.json().get('status', '')).lower(), 'pending')
            except requests.RequestException as e:
                log_error("consultar_status_pushinpay", e, {"external_id": external_id})
        return transacao['status']

    if gateway == 'simulado' and transacao['status'] in STATUS_ABERTOS:
        criado = datetime.fromisoformat(transacao['criado_em'])
        if (datetime.now() - criado).total_seconds() >= SEGUNDOS_APROVACAO_SIMULADA:
            return 'completed'

    # Ezzebank confirma pelo webhook
    return transacao['status']


def gateway_do_tipo(tipo):
    return buscar_um('gateways', tipo=tipo)


def aplicar_status_pagamento(transacao_id, novo_status, detalhes=None):
    """Leva a transação de pagamento ao novo status.

    Só transações pendentes/em processamento mudam. O saldo é creditado uma
    única vez, na transição para 'completed'. Devolve a transação atualizada
    ou None se nada mudou.
    """
    dados = {'status': novo_status, 'atualizado_em': datetime.now().isoformat()}
    if detalhes is not None:
        dados['detalhes'] = detalhes
    if novo_status == 'completed':
        dados['aprovado_em'] = datetime.now().isoformat()

    transacao = atualizar_se_status('transacoes_pagamento', transacao_id, STATUS_ABERTOS, dados)
    if not transacao or novo_status in STATUS_ABERTOS:
        return transacao

    if novo_status == 'completed':
        atualizar_saldo(transacao['usuario_id'], transacao['valor'])
        registrar_transacao(
            transacao['usuario_id'], 'deposit', transacao['valor'],
            f"Depósito via {transacao.get('gateway') or 'PIX'}", transacao['id']
        )
        log_info("aplicar_status_pagamento", f"Depósito {transacao_id} creditado: R$ {float(transacao['valor']):.2f}")
    else:
        log_info("aplicar_status_pagamento", f"Depósito {transacao_id} -> {novo_status}")

    return transacao


def registrar_falha_cobranca(transacao_id, erro):
    return atualizar('transacoes_pagamento', transacao_id, {
        'status': 'failed',
        'detalhes': {'erro': str(erro)},
        'atualizado_em': datetime.now().isoformat()
    })
