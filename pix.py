import io
import os
import re
import base64
import unicodedata

import qrcode

from armazenamento import log_error

PIX_CHAVE_RECEBEDOR = os.getenv('PIX_CHAVE_RECEBEDOR', 'pagamentos@pixbetbicho.com.br')
PIX_NOME_RECEBEDOR = os.getenv('PIX_NOME_RECEBEDOR', 'PIXBET BICHO')
PIX_CIDADE_RECEBEDOR = os.getenv('PIX_CIDADE_RECEBEDOR', 'SAO PAULO')


def _campo(identificador, valor):
    return f"{identificador}{len(valor):02d}{valor}"


def _ascii(texto, limite):
    texto = unicodedata.normalize('NFKD', texto).encode('ascii', 'ignore').decode()
    return texto.upper()[:limite]


def crc16_ccitt(payload):
    """CRC16-CCITT (polinômio 0x1021, início 0xFFFF) usado pelo BR Code"""
    crc = 0xFFFF
    for byte in payload.encode('utf-8'):
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return f"{crc:04X}"


def gerar_payload_pix(valor, txid, chave=None, nome=None, cidade=None):
    """Monta o código PIX copia e cola (BR Code estático)"""
    txid = re.sub(r'[^A-Za-z0-9]', '', str(txid))[:25] or '***'
    conta = _campo('00', 'br.gov.bcb.pix') + _campo('01', chave or PIX_CHAVE_RECEBEDOR)

    payload = (
        _campo('00', '01')
        + _campo('26', conta)
        + _campo('52', '0000')
        + _campo('53', '986')
        + _campo('54', f"{float(valor):.2f}")
        + _campo('58', 'BR')
        + _campo('59', _ascii(nome or PIX_NOME_RECEBEDOR, 25))
        + _campo('60', _ascii(cidade or PIX_CIDADE_RECEBEDOR, 15))
        + _campo('62', _campo('05', txid))
        + '6304'
    )
    return payload + crc16_ccitt(payload)


def gerar_qr_code_base64(texto):
    """PNG do QR code em base64; None se a imagem não puder ser gerada"""
    try:
        qr = qrcode.QRCode(version=1, box_size=10, border=5)
        qr.add_data(texto)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        img_buffer = io.BytesIO()
        img.save(img_buffer, format='PNG')
        return base64.b64encode(img_buffer.getvalue()).decode()
    except Exception as e:
        log_error("gerar_qr_code_base64", e)
        return None


def como_data_uri(imagem_base64):
    if not imagem_base64:
        return None
    if imagem_base64.startswith('data:image/'):
        return imagem_base64
    return f"data:image/png;base64,{imagem_base64}"
