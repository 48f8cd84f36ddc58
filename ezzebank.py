"""Integração com a API Ezzebank (cobranças PIX)."""
import os
import hmac
import json
import time
import hashlib
from datetime import datetime

import requests

from armazenamento import log_error, log_info
from pix import gerar_payload_pix, gerar_qr_code_base64, como_data_uri

VALOR_MINIMO = 1.00
TIMEOUT = 15

MAPA_STATUS = {
    'pending': 'pending',
    'processing': 'processing',
    'approved': 'completed',
    'completed': 'completed',
    'paid': 'completed',
    'cancelled': 'failed',
    'failed': 'failed',
    'refunded': 'refunded',
}


class ErroGateway(Exception):
    pass


def resolver_webhook_url():
    """URL de notificação: variável explícita ou APP_HOST + rota do webhook"""
    externa = os.getenv('EZZEBANK_WEBHOOK_URL')
    if externa:
        return externa
    host = os.getenv('APP_HOST', 'https://pixbetbicho.com.br').rstrip('/')
    return f"{host}/api/webhooks/ezzebank"


class EzzebankService:
    def __init__(self, api_key=None, merchant_id=None, base_url=None, webhook_url=None,
                 proxy_url=None, use_proxy=None, webhook_secret=None):
        self.api_key = api_key if api_key is not None else os.getenv('EZZEBANK_API_KEY', '')
        self.merchant_id = merchant_id if merchant_id is not None else os.getenv('EZZEBANK_MERCHANT_ID', '')
        self.base_url = (base_url or os.getenv('EZZEBANK_BASE_URL', 'https://api-staging.ezzebank.com/v1')).rstrip('/')
        self.webhook_url = webhook_url or resolver_webhook_url()
        self.proxy_url = proxy_url if proxy_url is not None else os.getenv('EZZEBANK_PROXY_URL', '')
        if use_proxy is None:
            use_proxy = os.getenv('EZZEBANK_USE_PROXY', 'false').lower() == 'true'
        self.use_proxy = bool(use_proxy and self.proxy_url)
        self.webhook_secret = webhook_secret if webhook_secret is not None else os.getenv('EZZEBANK_WEBHOOK_SECRET', '')

        if not self.api_key or not self.merchant_id:
            log_error("ezzebank", "Credenciais do Ezzebank não configuradas")

        log_info("ezzebank", f"Webhook: {self.webhook_url} - Proxy {'ATIVADO' if self.use_proxy else 'DESATIVADO'}")

    def criar_pagamento_pix(self, transacao_id, valor, nome=None, email=None, documento=None):
        """Cria cobrança PIX: chamada direta, proxy (se ativo) e QR code estático como último recurso"""
        valor = float(valor)
        if valor < VALOR_MINIMO:
            raise ErroGateway(f"O valor mínimo para pagamentos é R$1,00. Valor recebido: R${valor:.2f}")

        centavos = int(round(valor * 100))
        log_info("ezzebank", f"Transação {transacao_id}: R$ {valor:.2f} -> {centavos} centavos")

        dados = {
            'merchant_id': self.merchant_id,
            'amount': centavos,
            'currency': 'BRL',
            'payment_method': 'pix',
            'notify_url': self.webhook_url,
            'external_reference': f"TX-{transacao_id}",
            'description': f"Depósito ID: {transacao_id}",
            'customer': {
                'name': nome or 'Cliente',
                'email': email or None,
                'document': documento or None
            }
        }

        try:
            resposta = self._requisicao_direta(dados)
            return self._extrair(resposta)
        except (requests.RequestException, ErroGateway, ValueError, KeyError) as e:
            log_error("ezzebank_direto", e, {"transacao_id": transacao_id})

        if self.use_proxy:
            try:
                resposta = self._requisicao_proxy(dados)
                return self._extrair(resposta)
            except (requests.RequestException, ErroGateway, ValueError, KeyError) as e:
                log_error("ezzebank_proxy", e, {"transacao_id": transacao_id})
                raise ErroGateway(f"Falha em todas as tentativas de comunicação com a Ezzebank: {e}")

        log_info("ezzebank", "Usando QR code estático devido a falha nas tentativas anteriores")
        return self._fallback(transacao_id, valor, centavos, dados)

    def _requisicao_direta(self, dados):
        response = requests.post(
            f"{self.base_url}/payments",
            json=dados,
            headers={
                'Content-Type': 'application/json',
                'Authorization': f"Bearer {self.api_key}"
            },
            timeout=TIMEOUT
        )
        log_info("ezzebank", f"Código de resposta: {response.status_code}")
        if not response.ok:
            raise ErroGateway(f"Erro na API Ezzebank ({response.status_code}): {response.text[:300]}")
        return response.json()

    def _requisicao_proxy(self, dados):
        response = requests.post(
            self.proxy_url,
            json={'apiKey': self.api_key, 'requestData': dados, 'endpoint': '/payments'},
            headers={'Content-Type': 'application/json'},
            timeout=TIMEOUT
        )
        if not response.ok:
            raise ErroGateway(f"Falha no proxy ({response.status_code}): {response.text[:300]}")
        return response.json()

    def _extrair(self, resposta):
        imagem = resposta.get('pix_qr_code_image')
        if not imagem:
            raise ErroGateway("Resposta da Ezzebank sem a imagem do QR code")
        return {
            'qr_code_url': como_data_uri(imagem),
            'pix_copia_cola': resposta.get('pix_copy_paste') or resposta['pix_qr_code'],
            'external_id': str(resposta['id']),
            'detalhes': resposta
        }

    def _fallback(self, transacao_id, valor, centavos, dados):
        external_id = f"ezze_fallback_{transacao_id}_{int(time.time() * 1000)}"
        codigo_pix = gerar_payload_pix(valor, f"TX{transacao_id}")
        agora = datetime.now().isoformat()

        detalhes = {
            'id': external_id,
            'status': 'pending',
            'pix_qr_code': codigo_pix,
            'pix_copy_paste': codigo_pix,
            'created_at': agora,
            'updated_at': agora,
            'amount': centavos,
            'currency': 'BRL',
            'description': dados['description'],
            'external_reference': dados['external_reference'],
            'notify_url': dados['notify_url'],
            'fallback': True
        }

        return {
            'qr_code_url': como_data_uri(gerar_qr_code_base64(codigo_pix)),
            'pix_copia_cola': codigo_pix,
            'external_id': external_id,
            'detalhes': detalhes
        }

    def assinatura_esperada(self, payload):
        corpo = {chave: valor for chave, valor in payload.items() if chave != 'signature'}
        mensagem = json.dumps(corpo, sort_keys=True, separators=(',', ':'))
        return hmac.new(self.webhook_secret.encode(), mensagem.encode(), hashlib.sha256).hexdigest()

    def verificar_assinatura_webhook(self, payload, assinatura=None):
        """Exige id, status e signature; confere HMAC-SHA256 quando há segredo configurado.

        A assinatura pode vir no corpo (`signature`) ou em cabeçalho, passada em `assinatura`.
        """
        if not isinstance(payload, dict):
            return False
        assinatura = assinatura or payload.get('signature')
        if not payload.get('id') or not payload.get('status') or not assinatura:
            log_info("ezzebank", "Webhook com dados incompletos")
            return False

        if not self.webhook_secret:
            return True

        return hmac.compare_digest(str(assinatura), self.assinatura_esperada(payload))

    @staticmethod
    def mapear_status(status):
        return MAPA_STATUS.get(str(status or '').lower(), 'pending')
