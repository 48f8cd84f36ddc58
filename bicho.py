"""Regras do Jogo do Bicho: animais, modalidades, prêmios e apuração."""
from datetime import datetime, timedelta

TOTAL_PREMIOS = 5

ANIMAIS = [
    (1, "Avestruz"), (2, "Águia"), (3, "Burro"), (4, "Borboleta"), (5, "Cachorro"),
    (6, "Cabra"), (7, "Carneiro"), (8, "Camelo"), (9, "Cobra"), (10, "Coelho"),
    (11, "Cavalo"), (12, "Elefante"), (13, "Galo"), (14, "Gato"), (15, "Jacaré"),
    (16, "Leão"), (17, "Macaco"), (18, "Porco"), (19, "Pavão"), (20, "Peru"),
    (21, "Touro"), (22, "Tigre"), (23, "Urso"), (24, "Veado"), (25, "Vaca"),
]

TIPOS_PREMIO = ["1", "2", "3", "4", "5", "1-5"]

# tipo: (nome, quantidade de animais, quantidade de números, dígitos por número)
TIPOS_APOSTA = {
    'grupo': ("Grupo", 1, 0, 0),
    'duque_grupo': ("Duque de Grupo", 2, 0, 0),
    'terno_grupo': ("Terno de Grupo", 3, 0, 0),
    'quadra_duque': ("Quadra de Duque", 4, 0, 0),
    'quina_grupo': ("Quina de Grupo", 5, 0, 0),
    'dezena': ("Dezena", 0, 1, 2),
    'duque_dezena': ("Duque de Dezena", 0, 2, 2),
    'terno_dezena': ("Terno de Dezena", 0, 3, 2),
    'centena': ("Centena", 0, 1, 3),
    'milhar': ("Milhar", 0, 1, 4),
    'passe_ida': ("Passe Ida", 2, 0, 0),
    'passe_ida_volta': ("Passe Ida e Volta", 2, 0, 0),
}

# Apostas que combinam vários animais/dezenas sempre conferem do 1º ao 5º prêmio
TIPOS_COMBINADOS = {'duque_grupo', 'terno_grupo', 'quadra_duque', 'quina_grupo',
                    'duque_dezena', 'terno_dezena'}

# (nome, descrição, cotação em centavos do multiplicador, tipo de aposta)
MODALIDADES_PADRAO = [
    ("Milhar", "Jogo na milhar (4 números)", 800000, 'milhar'),
    ("Centena", "Jogo na centena (3 números)", 80000, 'centena'),
    ("Grupo", "Jogo no grupo", 2100, 'grupo'),
    ("Dezena", "Jogo na dezena (2 números)", 8400, 'dezena'),
    ("Duque de Grupo", "Jogo em 2 grupos", 2000, 'duque_grupo'),
    ("Duque de Dezena", "Jogo em 2 dezenas", 30000, 'duque_dezena'),
    ("Quadra de Duque", "Jogo em 4 grupos em dupla", 100000, 'quadra_duque'),
    ("Terno de Grupo", "Jogo em 3 grupos", 15000, 'terno_grupo'),
    ("Terno de Dezena", "Jogo em 3 dezenas", 600000, 'terno_dezena'),
    ("Quina de Grupo", "Jogo em 5 grupos", 500000, 'quina_grupo'),
    ("Passe IDA", "Passe simples", 9000, 'passe_ida'),
    ("Passe IDAxVOLTA", "Passe duplo", 4500, 'passe_ida_volta'),
]

HORARIOS_SORTEIO = [("14:00", "Federal"), ("16:00", "PTM"), ("18:00", "Coruja"), ("20:00", "Noturno")]


def dezenas_do_grupo(grupo):
    """Grupo 1 -> ['01', '02', '03', '04']; grupo 25 termina em '00'"""
    inicio = (grupo - 1) * 4 + 1
    return [f"{n % 100:02d}" for n in range(inicio, inicio + 4)]


def animais_padrao():
    return [{'grupo': grupo, 'nome': nome, 'numeros': dezenas_do_grupo(grupo)} for grupo, nome in ANIMAIS]


def nome_do_grupo(grupo):
    for numero, nome in ANIMAIS:
        if numero == grupo:
            return nome
    return None


def normalizar_milhar(numero):
    """Valida e completa com zeros à esquerda um número de até 4 dígitos"""
    texto = str(numero).strip()
    if not texto.isdigit() or len(texto) > 4:
        raise ValueError(f"Milhar inválida: {numero}")
    return texto.zfill(4)


def dezena_da_milhar(milhar):
    return normalizar_milhar(milhar)[2:]


def centena_da_milhar(milhar):
    return normalizar_milhar(milhar)[1:]


def grupo_da_milhar(milhar):
    """O grupo sai da dezena: 01-04 -> 1, ..., 97-99 e 00 -> 25"""
    dezena = int(dezena_da_milhar(milhar))
    if dezena == 0:
        return 25
    return (dezena + 3) // 4


def montar_resultado(milhares=None, grupos=None):
    """Monta os 5 prêmios de um sorteio.

    Cada posição pode vir com a milhar (o grupo é derivado dela) ou só com o
    grupo. O 1º prêmio é obrigatório. Devolve uma lista de 5 dicts
    {'premio', 'milhar', 'grupo'}, com None nas posições não informadas.
    """
    milhares = list(milhares or [])
    grupos = list(grupos or [])
    if len(milhares) > TOTAL_PREMIOS or len(grupos) > TOTAL_PREMIOS:
        raise ValueError("Um sorteio tem no máximo 5 prêmios")

    resultado = []
    for posicao in range(TOTAL_PREMIOS):
        milhar = milhares[posicao] if posicao < len(milhares) else None
        grupo = grupos[posicao] if posicao < len(grupos) else None
        milhar = normalizar_milhar(milhar) if milhar not in (None, '') else None
        grupo = int(grupo) if grupo not in (None, '') else None

        if milhar is not None:
            derivado = grupo_da_milhar(milhar)
            if grupo is not None and grupo != derivado:
                raise ValueError(
                    f"{posicao + 1}º prêmio: milhar {milhar} pertence ao grupo {derivado}, não ao grupo {grupo}"
                )
            grupo = derivado
        elif grupo is not None and not 1 <= grupo <= 25:
            raise ValueError(f"{posicao + 1}º prêmio: grupo {grupo} inválido")

        resultado.append({'premio': posicao + 1, 'milhar': milhar, 'grupo': grupo})

    if resultado[0]['grupo'] is None:
        raise ValueError("O resultado do 1º prêmio é obrigatório")
    return resultado


def premios_considerados(tipo_aposta, tipo_premio):
    """Posições (1..5) que valem para a aposta"""
    if tipo_aposta in TIPOS_COMBINADOS or tipo_premio == "1-5":
        return list(range(1, TOTAL_PREMIOS + 1))
    return [int(tipo_premio)]


def validar_selecao(tipo_aposta, grupos=None, numeros=None):
    """Confere animais/números escolhidos para a modalidade; devolve (grupos, numeros) normalizados"""
    if tipo_aposta not in TIPOS_APOSTA:
        raise ValueError("Tipo de aposta inválido")

    nome, qtd_animais, qtd_numeros, digitos = TIPOS_APOSTA[tipo_aposta]
    grupos = [int(g) for g in (grupos or [])]
    numeros = [str(n).strip() for n in (numeros or [])]

    if qtd_animais:
        if len(grupos) != qtd_animais:
            raise ValueError(f"{nome} exige {qtd_animais} animal(is)")
        if any(not 1 <= g <= 25 for g in grupos):
            raise ValueError("Grupo inválido")
        if len(set(grupos)) != len(grupos):
            raise ValueError("Os animais escolhidos devem ser diferentes")
        return grupos, []

    if len(numeros) != qtd_numeros:
        raise ValueError(f"{nome} exige {qtd_numeros} número(s)")
    for numero in numeros:
        if not numero.isdigit() or len(numero) != digitos:
            raise ValueError(f"{nome} exige números de {digitos} dígitos")
    if len(set(numeros)) != len(numeros):
        raise ValueError("Os números escolhidos devem ser diferentes")
    return [], numeros


def _milhares(resultado, posicoes):
    return [p['milhar'] for p in resultado if p['premio'] in posicoes and p['milhar']]


def _grupos(resultado, posicoes):
    return [p['grupo'] for p in resultado if p['premio'] in posicoes and p['grupo']]


def aposta_vencedora(aposta, resultado):
    """Apura uma aposta contra o resultado montado por `montar_resultado`"""
    tipo = aposta['tipo']
    tipo_premio = aposta.get('tipo_premio') or "1"
    grupos = aposta.get('grupos') or []
    numeros = aposta.get('numeros') or []
    posicoes = premios_considerados(tipo, tipo_premio)

    if tipo == 'grupo':
        return grupos[0] in _grupos(resultado, posicoes)

    if tipo in ('duque_grupo', 'terno_grupo', 'quadra_duque', 'quina_grupo'):
        sorteados = set(_grupos(resultado, posicoes))
        return set(grupos) <= sorteados

    if tipo == 'dezena':
        return numeros[0] in [dezena_da_milhar(m) for m in _milhares(resultado, posicoes)]

    if tipo == 'centena':
        return numeros[0] in [centena_da_milhar(m) for m in _milhares(resultado, posicoes)]

    if tipo == 'milhar':
        return numeros[0] in _milhares(resultado, posicoes)

    if tipo in ('duque_dezena', 'terno_dezena'):
        sorteadas = {dezena_da_milhar(m) for m in _milhares(resultado, posicoes)}
        return set(numeros) <= sorteadas

    if tipo in ('passe_ida', 'passe_ida_volta'):
        primeiro, segundo = resultado[0]['grupo'], resultado[1]['grupo']
        if primeiro is None or segundo is None:
            return False
        if tipo == 'passe_ida':
            return grupos == [primeiro, segundo]
        return sorted(grupos) == sorted([primeiro, segundo])

    return False


def nome_tipo_aposta(tipo, nome_modalidade=None):
    """Nome de exibição da modalidade"""
    if nome_modalidade:
        return nome_modalidade.strip()
    if tipo in TIPOS_APOSTA:
        return TIPOS_APOSTA[tipo][0]
    texto = str(tipo).replace('_', ' ')
    return texto[:1].upper() + texto[1:]


def horarios_futuros(agora, dias=3):
    """Horários de sorteio de hoje (ainda não passados) e dos próximos dias"""
    horarios = []
    for dia in range(dias):
        data = (agora + timedelta(days=dia)).date()
        for hora, nome in HORARIOS_SORTEIO:
            h, m = (int(parte) for parte in hora.split(':'))
            quando = datetime(data.year, data.month, data.day, h, m)
            if quando > agora:
                horarios.append({'nome': nome, 'hora': hora, 'data': quando})
    return horarios
