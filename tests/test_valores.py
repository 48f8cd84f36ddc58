from decimal import Decimal

import pytest

from valores import (
    parse_money_value, parse_centavos_digitados, formatar_valor, format_currency,
    arredondar, calcular_ganho_potencial, aposta_maxima_para_modalidade
)


@pytest.mark.parametrize('texto, esperado', [
    ("1.234,56", "1234.56"),
    ("2,5", "2.50"),
    ("250", "250.00"),
    ("1.000", "1000.00"),
    ("2.5", "2.50"),
    ("10.99", "10.99"),
    ("R$ 10,99", "10.99"),
    ("1,999", "1.99"),
    ("-3,5", "-3.50"),
    ("abc", "0.00"),
    ("", "0.00"),
])
def test_parse_money_value_texto(texto, esperado):
    assert parse_money_value(texto) == Decimal(esperado)


def test_parse_money_value_numeros():
    assert parse_money_value(12.5) == Decimal("12.50")
    assert parse_money_value(7) == Decimal("7.00")
    assert parse_money_value(Decimal("3.456")) == Decimal("3.46")
    assert parse_money_value(None) == Decimal("0.00")
    assert parse_money_value(True) == Decimal("0.00")


def test_parse_centavos_digitados():
    assert parse_centavos_digitados("250") == Decimal("2.50")
    assert parse_centavos_digitados("1") == Decimal("0.01")
    assert parse_centavos_digitados("12a34") == Decimal("12.34")
    assert parse_centavos_digitados("") == Decimal("0.00")


def test_format_currency():
    assert format_currency(1234.5) == "R$ 1.234,50"
    assert format_currency("1.000.000,00") == "R$ 1.000.000,00"
    assert format_currency(0) == "R$ 0,00"
    assert format_currency(None) == "R$ 0,00"
    assert format_currency(-3.5) == "R$ -3,50"
    assert formatar_valor(Decimal("15")) == "15,00"


def test_arredondar_devolve_float():
    assert arredondar("10,555") == 10.55
    assert arredondar(2.675) == 2.68
    assert isinstance(arredondar(1), float)


def test_ganho_potencial_premio_unico():
    assert calcular_ganho_potencial(10, 2100) == Decimal("210.00")
    assert calcular_ganho_potencial("10,00", 2100, "3") == Decimal("210.00")
    assert calcular_ganho_potencial(2, 800000) == Decimal("16000.00")


def test_ganho_potencial_todos_os_premios_divide_por_cinco():
    assert calcular_ganho_potencial(10, 2100, "1-5") == Decimal("42.00")
    # 3,33 x 84 = 279,72 / 5 = 55,944 -> truncado no centavo
    assert calcular_ganho_potencial("3,33", 8400, "1-5") == Decimal("55.94")


def test_aposta_maxima_para_modalidade():
    assert aposta_maxima_para_modalidade(1000000, 800000) == Decimal("125.00")
    assert aposta_maxima_para_modalidade(1000000, 800000, "1-5") == Decimal("625.00")
    assert aposta_maxima_para_modalidade(1000, 0) == Decimal("0.00")
