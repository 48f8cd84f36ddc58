"""Conversão e formatação de valores em reais (R$).

Regras de leitura de valores digitados:

- Com vírgula: formato brasileiro, pontos são separadores de milhar
  ("1.234,5" -> 1234.50). Casas além da segunda são descartadas.
- Sem vírgula e com um único ponto seguido de 1 ou 2 dígitos: ponto decimal
  ("2.5" -> 2.50), como chegam os números serializados em JSON.
- Demais casos: dígitos são reais inteiros ("250" -> 250.00,
  "1.000" -> 1000.00).

O teclado numérico trabalha em centavos e usa `parse_centavos_digitados`.
"""
import re
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP

CENTAVO = Decimal('0.01')
ZERO = Decimal('0.00')

DIVISOR_TODOS_PREMIOS = 5


def _quantizar(valor, arredondamento=ROUND_HALF_UP):
    return valor.quantize(CENTAVO, rounding=arredondamento)


def parse_money_value(valor):
    """Converte texto digitado (ou número) em Decimal com 2 casas; inválido vira 0"""
    if valor is None or isinstance(valor, bool):
        return ZERO

    if isinstance(valor, (int, float, Decimal)):
        try:
            return _quantizar(Decimal(str(valor)))
        except InvalidOperation:
            return ZERO

    texto = re.sub(r'\s+', '', str(valor)).replace('R$', '')
    negativo = texto.startswith('-')
    texto = re.sub(r'[^\d,.]', '', texto)
    if not texto:
        return ZERO

    if ',' in texto:
        inteiro, _, decimal = texto.partition(',')
        inteiro = inteiro.replace('.', '') or '0'
        decimal = re.sub(r'\D', '', decimal)[:2].ljust(2, '0')
    elif re.fullmatch(r'\d*\.\d{1,2}', texto):
        inteiro, _, decimal = texto.partition('.')
        inteiro = inteiro or '0'
        decimal = decimal.ljust(2, '0')
    else:
        inteiro = texto.replace('.', '')
        decimal = '00'

    if not inteiro.isdigit():
        return ZERO

    resultado = Decimal(f"{int(inteiro)}.{decimal}")
    return -resultado if negativo else resultado


def parse_centavos_digitados(texto):
    """Teclado numérico: os dígitos são centavos ("250" -> 2.50)"""
    digitos = re.sub(r'\D', '', str(texto or ''))
    if not digitos:
        return ZERO
    return _quantizar(Decimal(int(digitos)) / 100)


def formatar_valor(valor):
    """1234.5 -> '1.234,50'"""
    numero = _quantizar(parse_money_value(valor))
    sinal = '-' if numero < 0 else ''
    inteiro, _, decimal = f"{abs(numero):.2f}".partition('.')
    inteiro = f"{int(inteiro):,}".replace(',', '.')
    return f"{sinal}{inteiro},{decimal}"


def format_currency(valor):
    """1234.5 -> 'R$ 1.234,50'"""
    if valor in (None, ''):
        return "R$ 0,00"
    return f"R$ {formatar_valor(valor)}"


def arredondar(valor):
    """Decimal/str/número -> float com 2 casas, para armazenar e serializar"""
    return float(_quantizar(parse_money_value(valor)))


def multiplicador_da_odds(odds):
    """Cotação salva em centavos do multiplicador (2100 -> 21x)"""
    return Decimal(str(odds)) / 100


def calcular_ganho_potencial(valor, odds, tipo_premio="1"):
    """Ganho potencial de uma aposta, já dividido quando o prêmio é '1-5'"""
    valor = parse_money_value(valor)
    ganho = valor * multiplicador_da_odds(odds)
    if tipo_premio == "1-5":
        ganho = ganho / DIVISOR_TODOS_PREMIOS
    return _quantizar(ganho, ROUND_DOWN)


def aposta_maxima_para_modalidade(max_payout, odds, tipo_premio="1"):
    """Maior aposta cujo ganho potencial não passa do prêmio máximo"""
    multiplicador = multiplicador_da_odds(odds)
    if multiplicador <= 0:
        return ZERO
    if tipo_premio == "1-5":
        multiplicador = multiplicador / DIVISOR_TODOS_PREMIOS
    return _quantizar(parse_money_value(max_payout) / multiplicador, ROUND_DOWN)
