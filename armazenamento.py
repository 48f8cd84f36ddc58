import os
import json
import threading
from datetime import datetime

from dotenv import load_dotenv
from flask import has_request_context, request
from supabase import create_client, Client

load_dotenv()

SUPABASE_URL = os.getenv('SUPABASE_URL')
SUPABASE_KEY = os.getenv('SUPABASE_KEY')

PREFIXO = 'jb_'

TABELAS = [
    'usuarios',
    'animais',
    'sorteios',
    'apostas',
    'modalidades',
    'gateways',
    'transacoes_pagamento',
    'saques',
    'transacoes',
]

CONFIGURACOES_PADRAO = {
    'max_bet_amount': '10000.00',
    'max_payout': '1000000.00',
    'min_bet_amount': '5.00',
    'default_bet_amount': '20.00',
    'main_color': '#4f46e5',
    'secondary_color': '#6366f1',
    'accent_color': '#f97316',
    'allow_user_registration': 'true',
    'allow_deposits': 'true',
    'allow_withdrawals': 'true',
    'maintenance_mode': 'false',
    'auto_approve_withdrawals': 'false',
    'auto_approve_withdrawal_limit': '0.00',
}

# Armazenamento em memória (usado quando o Supabase não está configurado)
memory_storage = {tabela: [] for tabela in TABELAS}
memory_storage['configuracoes'] = dict(CONFIGURACOES_PADRAO)
memory_storage['logs'] = []

_lock = threading.RLock()

supabase = None
if SUPABASE_URL and SUPABASE_KEY:
    try:
        supabase: Client = create_client(SUPABASE_URL, SUPABASE_KEY)
        print("✅ Supabase conectado com sucesso")
    except Exception as e:
        print(f"❌ Erro ao conectar com Supabase: {str(e)}")
        print("📝 Usando sistema de armazenamento em memória")
        supabase = None


class ErroOperacao(Exception):
    """Erro de regra de negócio com mensagem pronta para o usuário"""


# ========== LOGS ==========

def log_error(operation, error, extra_data=None):
    """Log de erros centralizado"""
    print(f"❌ [{operation}] {str(error)}")
    if extra_data:
        print(f"   Dados extras: {extra_data}")

    ip_origem = request.remote_addr if has_request_context() else None

    if supabase:
        try:
            supabase.table(PREFIXO + 'logs_sistema').insert({
                'jb_operacao': operation,
                'jb_tipo': 'error',
                'jb_mensagem': str(error)[:500],
                'jb_dados_extras': json.dumps(extra_data, default=str) if extra_data else None,
                'jb_ip_origem': ip_origem
            }).execute()
        except Exception as e:
            print(f"⚠️ [log_error] Falha ao gravar log: {e}")
    else:
        memory_storage['logs'].append({
            'id': len(memory_storage['logs']) + 1,
            'operacao': operation,
            'tipo': 'error',
            'mensagem': str(error)[:500],
            'dados_extras': json.dumps(extra_data, default=str) if extra_data else None,
            'ip_origem': ip_origem,
            'timestamp': datetime.now().isoformat()
        })


def log_info(operation, message, extra_data=None):
    """Log de informações centralizado"""
    print(f"ℹ️ [{operation}] {message}")
    if extra_data:
        print(f"   Dados: {extra_data}")


# ========== CONVERSÃO SUPABASE ==========

def _para_banco(dados):
    return {PREFIXO + chave: valor for chave, valor in dados.items() if chave != 'id'}


def _do_banco(linha):
    registro = {}
    for chave, valor in linha.items():
        if chave.startswith(PREFIXO):
            chave = chave[len(PREFIXO):]
        registro[chave] = valor
    return registro


def _agora():
    return datetime.now().isoformat()


def _proximo_id(tabela):
    registros = memory_storage[tabela]
    return max((r['id'] for r in registros), default=0) + 1


def _confere(registro, filtros):
    return all(registro.get(chave) == valor for chave, valor in filtros.items())


# ========== OPERAÇÕES GENÉRICAS ==========

def inserir(tabela, dados):
    """Insere um registro e devolve o registro salvo (com id)"""
    dados = dict(dados)
    dados.setdefault('criado_em', _agora())

    if supabase:
        response = supabase.table(PREFIXO + tabela).insert(_para_banco(dados)).execute()
        if not response.data:
            raise ErroOperacao(f"Falha ao inserir em {tabela}")
        return _do_banco(response.data[0])

    with _lock:
        dados['id'] = _proximo_id(tabela)
        memory_storage[tabela].append(dados)
        return dict(dados)


def buscar(tabela, ordem=None, desc=False, **filtros):
    """Lista registros que conferem com todos os filtros de igualdade"""
    if supabase:
        query = supabase.table(PREFIXO + tabela).select('*')
        for chave, valor in filtros.items():
            query = query.eq(PREFIXO + chave, valor)
        if ordem:
            query = query.order(PREFIXO + ordem, desc=desc)
        response = query.execute()
        return [_do_banco(linha) for linha in (response.data or [])]

    with _lock:
        registros = [dict(r) for r in memory_storage[tabela] if _confere(r, filtros)]
    if ordem:
        registros.sort(key=lambda r: (r.get(ordem) is None, r.get(ordem)), reverse=desc)
    return registros


def buscar_um(tabela, **filtros):
    registros = buscar(tabela, **filtros)
    return registros[0] if registros else None


def atualizar(tabela, registro_id, dados):
    """Atualiza campos de um registro; devolve o registro atualizado ou None"""
    dados = {chave: valor for chave, valor in dados.items() if chave not in ('id', 'criado_em')}

    if supabase:
        response = supabase.table(PREFIXO + tabela).update(_para_banco(dados)).eq(
            PREFIXO + 'id', registro_id
        ).execute()
        return _do_banco(response.data[0]) if response.data else None

    with _lock:
        for registro in memory_storage[tabela]:
            if registro['id'] == registro_id:
                registro.update(dados)
                return dict(registro)
    return None


def atualizar_se_status(tabela, registro_id, status_permitidos, dados):
    """Atualiza só se o status atual estiver em status_permitidos; devolve o registro ou None"""
    dados = {chave: valor for chave, valor in dados.items() if chave not in ('id', 'criado_em')}

    if supabase:
        response = supabase.table(PREFIXO + tabela).update(_para_banco(dados)).eq(
            PREFIXO + 'id', registro_id
        ).in_(PREFIXO + 'status', list(status_permitidos)).execute()
        return _do_banco(response.data[0]) if response.data else None

    with _lock:
        for registro in memory_storage[tabela]:
            if registro['id'] == registro_id:
                if registro.get('status') not in status_permitidos:
                    return None
                registro.update(dados)
                return dict(registro)
    return None


def remover(tabela, registro_id):
    if supabase:
        response = supabase.table(PREFIXO + tabela).delete().eq(PREFIXO + 'id', registro_id).execute()
        return bool(response.data)

    with _lock:
        antes = len(memory_storage[tabela])
        memory_storage[tabela] = [r for r in memory_storage[tabela] if r['id'] != registro_id]
        return len(memory_storage[tabela]) < antes


# ========== CONFIGURAÇÕES ==========

def obter_configuracao(chave, valor_padrao=None):
    """Obtém valor de configuração"""
    if supabase:
        try:
            response = supabase.table(PREFIXO + 'configuracoes').select('jb_valor').eq('jb_chave', chave).execute()
            if response.data:
                return response.data[0]['jb_valor']
            return valor_padrao
        except Exception as e:
            log_error("obter_configuracao", e, {"chave": chave})
            return valor_padrao
    else:
        return memory_storage['configuracoes'].get(chave, valor_padrao)


def atualizar_configuracao(chave, valor, tipo='geral'):
    """Atualiza valor de configuração"""
    if supabase:
        try:
            response = supabase.table(PREFIXO + 'configuracoes').update({
                'jb_valor': str(valor),
                'jb_atualizado_em': _agora()
            }).eq('jb_chave', chave).execute()

            if not response.data:
                response = supabase.table(PREFIXO + 'configuracoes').insert({
                    'jb_chave': chave,
                    'jb_valor': str(valor),
                    'jb_tipo': tipo
                }).execute()

            log_info("atualizar_configuracao", f"{chave} = {valor}")
            return response.data is not None
        except Exception as e:
            log_error("atualizar_configuracao", e, {"chave": chave, "valor": valor})
            return False
    else:
        memory_storage['configuracoes'][chave] = str(valor)
        log_info("atualizar_configuracao", f"{chave} = {valor} (memoria)")
        return True


# ========== SALDO ==========

TENTATIVAS_SALDO = 5


def _gravar_saldo(usuario_id, saldo_anterior, novo_saldo):
    """Grava o novo saldo só se o saldo no banco ainda for saldo_anterior"""
    if supabase:
        response = supabase.table(PREFIXO + 'usuarios').update({'jb_saldo': novo_saldo}).eq(
            PREFIXO + 'id', usuario_id
        ).eq(PREFIXO + 'saldo', saldo_anterior).execute()
        return _do_banco(response.data[0]) if response.data else None

    with _lock:
        for registro in memory_storage['usuarios']:
            if registro['id'] == usuario_id:
                if float(registro.get('saldo') or 0) != saldo_anterior:
                    return None
                registro['saldo'] = novo_saldo
                return dict(registro)
    return None


def _alterar_saldo(usuario_id, delta, exigir_saldo=False):
    # Releitura e nova tentativa quando outro processo mexeu no saldo entre a leitura e a gravação
    for _ in range(TENTATIVAS_SALDO):
        usuario = buscar_um('usuarios', id=usuario_id)
        if not usuario:
            return None, None, None

        saldo_anterior = usuario.get('saldo') or 0
        novo_saldo = round(float(saldo_anterior) + float(delta), 2)
        if exigir_saldo and novo_saldo < 0:
            raise ErroOperacao("Saldo insuficiente")

        atualizado = _gravar_saldo(usuario_id, saldo_anterior, novo_saldo)
        if atualizado:
            return atualizado, float(saldo_anterior), novo_saldo

    raise ErroOperacao("Saldo alterado por outra operação, tente novamente")


def atualizar_saldo(usuario_id, delta):
    """Soma delta ao saldo do usuário; devolve o usuário atualizado ou None"""
    with _lock:
        atualizado, saldo_anterior, novo_saldo = _alterar_saldo(usuario_id, delta)
    if not atualizado:
        log_error("atualizar_saldo", "Usuário não encontrado", {"usuario_id": usuario_id})
        return None

    log_info("atualizar_saldo", f"Usuário {usuario_id}: R$ {saldo_anterior:.2f} -> R$ {novo_saldo:.2f}")
    return atualizado


def debitar_saldo(usuario_id, valor):
    """Debita valor se houver saldo; levanta ErroOperacao caso contrário"""
    with _lock:
        atualizado, saldo_anterior, novo_saldo = _alterar_saldo(usuario_id, -round(float(valor), 2), exigir_saldo=True)
    if not atualizado:
        raise ErroOperacao("Usuário não encontrado")

    log_info("debitar_saldo", f"Usuário {usuario_id}: R$ {saldo_anterior:.2f} -> R$ {novo_saldo:.2f}")
    return atualizado


def registrar_transacao(usuario_id, tipo, valor, descricao=None, relacionado_id=None):
    """Registra uma movimentação no histórico financeiro (deposit, withdrawal, bet, win)"""
    return inserir('transacoes', {
        'usuario_id': usuario_id,
        'tipo': tipo,
        'valor': round(float(valor), 2),
        'descricao': descricao,
        'relacionado_id': relacionado_id
    })


def resetar_memoria():
    """Limpa o armazenamento em memória"""
    with _lock:
        for tabela in TABELAS:
            memory_storage[tabela] = []
        memory_storage['configuracoes'] = dict(CONFIGURACOES_PADRAO)
        memory_storage['logs'] = []
