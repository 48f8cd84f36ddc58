import re

TIPOS_CHAVE_PIX = {
    'cpf': "CPF",
    'email': "Email",
    'phone': "Telefone",
    'random': "Chave Aleatória",
}


def somente_digitos(texto):
    return re.sub(r'\D', '', str(texto or ''))


def valida_cpf(cpf):
    """Valida CPF pelos dígitos verificadores; rejeita sequências repetidas"""
    numeros = somente_digitos(cpf)
    if len(numeros) != 11 or numeros == numeros[0] * 11:
        return False

    for posicao in (9, 10):
        soma = sum(int(numeros[i]) * (posicao + 1 - i) for i in range(posicao))
        resto = soma % 11
        digito = 0 if resto < 2 else 11 - resto
        if int(numeros[posicao]) != digito:
            return False
    return True


def formata_cpf(cpf):
    """12345678909 -> 123.456.789-09 (devolve a entrada se não tiver 11 dígitos)"""
    numeros = somente_digitos(cpf)
    if len(numeros) != 11:
        return cpf
    return f"{numeros[:3]}.{numeros[3:6]}.{numeros[6:9]}-{numeros[9:]}"


def valida_chave_pix(tipo, chave):
    """Devolve a chave normalizada ou levanta ValueError"""
    chave = str(chave or '').strip()
    if tipo not in TIPOS_CHAVE_PIX:
        raise ValueError("Tipo de chave PIX inválido")
    if not chave:
        raise ValueError("Chave PIX é obrigatória")

    if tipo == 'cpf':
        if not valida_cpf(chave):
            raise ValueError("CPF inválido")
        return somente_digitos(chave)

    if tipo == 'email':
        if not re.fullmatch(r'[^@\s]+@[^@\s]+\.[^@\s]+', chave):
            raise ValueError("Email inválido")
        return chave.lower()

    if tipo == 'phone':
        digitos = somente_digitos(chave)
        if digitos.startswith('55') and len(digitos) in (12, 13):
            digitos = digitos[2:]
        if len(digitos) not in (10, 11):
            raise ValueError("Telefone inválido")
        return f"+55{digitos}"

    # chave aleatória (EVP): UUID
    if not re.fullmatch(r'[0-9a-fA-F]{8}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{12}', chave):
        raise ValueError("Chave aleatória inválida")
    return chave.lower()


def sanitizar_dados_entrada(data):
    """Sanitiza dados de entrada para evitar problemas de segurança"""
    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            if isinstance(value, str):
                sanitized[key] = value.strip()[:500]
            else:
                sanitized[key] = value
        return sanitized
    elif isinstance(data, str):
        return data.strip()[:500]
    return data if data is not None else {}
